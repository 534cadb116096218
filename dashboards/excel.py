import io
from typing import Any, Dict, List, Sequence, Tuple

import pandas as pd
from django.http import HttpResponse

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (sheet name, rows, column order)
Sheet = Tuple[str, List[Dict[str, Any]], Sequence[str]]


def workbook_bytes(sheets: Sequence[Sheet]) -> bytes:
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for name, rows, columns in sheets:
            df = pd.DataFrame(rows, columns=list(columns))
            # Excel caps sheet names at 31 characters
            df.to_excel(writer, sheet_name=name[:31], index=False)
            sheet = writer.sheets[name[:31]]
            for idx, column in enumerate(df.columns, start=1):
                values = [str(v) for v in df[column].tolist() if v is not None]
                width = max([len(str(column))] + [len(v) for v in values]) + 2
                sheet.column_dimensions[sheet.cell(row=1, column=idx).column_letter].width = min(width, 60)
    return output.getvalue()


def xlsx_response(filename: str, sheets: Sequence[Sheet]) -> HttpResponse:
    response = HttpResponse(workbook_bytes(sheets), content_type=XLSX_CONTENT_TYPE)
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
