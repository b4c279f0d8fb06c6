import numbers
import pandas as pd
import json

REQUIRED_COLUMNS = [
    "question_text",
    "options(json)",
    "correct_option",
    "marks",
]

# spreadsheet row numbers: header is row 1
FIRST_DATA_ROW = 2


def _whole_number(value, column):
    if isinstance(value, bool):
        raise ValueError(f"{column} must be a whole number, got {value!r}")
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        if float(value).is_integer():
            return int(value)
        raise ValueError(f"{column} must be a whole number, got {value}")
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"{column} must be a whole number, got {value!r}")


def _options(value):
    if pd.isna(value):
        return []
    if not isinstance(value, str):
        raise ValueError(f"options(json) must be a JSON list of strings, got {value!r}")
    parsed = json.loads(value)
    if not isinstance(parsed, list):
        raise ValueError(f"options(json) must be a JSON list of strings, got {value!r}")
    return [str(o) for o in parsed]


def _parse_row(row):
    text = row["question_text"]
    correct = row["correct_option"]
    marks = row["marks"]
    return {
        "text": str(text).strip() if pd.notna(text) else "",
        "options": _options(row["options(json)"]),
        "correct_option": _whole_number(correct, "correct_option") if pd.notna(correct) else None,
        "marks": _whole_number(marks, "marks") if pd.notna(marks) else 1,
    }


def parse_excel(file):
    """
    Read exam questions from a spreadsheet, one question per row, in sheet order.

    Returns (questions, errors). Each question dict carries its sheet "row"
    number; a row whose cells cannot be read lands in errors as
    {"row", "errors"} instead of failing the whole file.
    """
    df = pd.read_excel(file)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        # Raise KeyError so upstream router can return a HTTP 400 with a helpful message
        raise KeyError(missing[0])

    questions, errors = [], []
    for idx, (_, row) in enumerate(df.iterrows()):
        row_number = idx + FIRST_DATA_ROW
        try:
            q = _parse_row(row)
        except (ValueError, TypeError) as e:
            errors.append({"row": row_number, "errors": [str(e)]})
            continue
        q["row"] = row_number
        questions.append(q)

    return questions, errors
