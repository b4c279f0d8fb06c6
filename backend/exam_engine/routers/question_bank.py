from fastapi import APIRouter, UploadFile, File, Depends, HTTPException, status
import os
from pydantic import ValidationError as PydanticValidationError

from ..dependencies import exam_manager
from ..schemas.exam_schema import QuestionCreate
from ..services.excel_service import parse_excel, REQUIRED_COLUMNS

router = APIRouter(prefix="/exams", tags=["Question Import"])


# Upload Excel & Preview
@router.post("/import", dependencies=[Depends(exam_manager)])
async def upload_excel(file: UploadFile = File(...)):
    #  check file extension and return parsed preview; nothing is saved here,
    #  the staff client sends the accepted questions with the exam create/update
    file_extension = os.path.splitext(file.filename or "")[1]  # file extension
    allowed_extension = {".xlsx", ".xlsm", ".xls", ".xlsb", ".ods"}

    # Check if the extension is allowed
    if file_extension not in allowed_extension:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file extension. Only {sorted(allowed_extension)} are allowed."
        )
    try:
        rows, errors = parse_excel(file.file)
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Column not found :{str(e)}. Please check the column in uploaded file. "
                f"file must contain these columns {REQUIRED_COLUMNS}. Columns are case sensitive, "
                "so remove spaces or unusual characters from columns."
            ),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Could not read spreadsheet: {e}")

    total = len(rows) + len(errors)
    preview = []
    for row in rows:
        row_number = row.pop("row")
        try:
            preview.append(QuestionCreate(**row).model_dump(exclude={"id"}))
        except PydanticValidationError as e:
            errors.append({"row": row_number, "errors": [err["msg"] for err in e.errors()]})

    errors.sort(key=lambda err: err["row"])
    return {"total": total, "preview": preview, "errors": errors}
