"""Sample exports and pipeline shortcuts shared by the migration tests."""
import io
import zipfile

import openpyxl

NAVEX_CSV = (
    "Case Number,Case Type,Case Status,Date Reported,Description,Priority,Location,Subject Name\n"
    "NVX-001,Harassment,Investigating,2024-01-15,Manager made inappropriate comments,High,Chicago HQ,John Smith\n"
    "NVX-002,Fraud,Closed,2024-02-01,Expense report irregularities,Medium,NYC Office,Jane Doe\n"
    "NVX-003,Other,Open,2024-03-10,General concern raised by staff,Low,Remote,\n"
)

GENERIC_CSV_WITH_BAD_ROW = (
    "ticket,concern,stage,urgency\n"
    "T-1,First report,open,3\n"
    "T-2,,closed,1\n"
    "T-3,Third report,zzz,high\n"
    "T-4,Fourth report,closed,low\n"
)

TENANT = "tenant-a"


def upload_csv(orchestrator, content: str, file_name: str = "export.csv", tenant_id: str = TENANT, hint=None):
    return orchestrator.upload(tenant_id, file_name, content.encode("utf-8"), hint=hint)


def import_file(orchestrator, content: str, file_name: str = "export.csv", tenant_id: str = TENANT):
    """Upload, validate and import ``content``; returns the final job."""
    job_id = upload_csv(orchestrator, content, file_name, tenant_id)["job"]["id"]
    orchestrator.validate(tenant_id, job_id)
    orchestrator.start_import(tenant_id, job_id, "IMPORT")
    return orchestrator.run_import(job_id)


def truncated_xlsx(row_count: int = 500) -> bytes:
    """A valid XLSX archive whose first worksheet's XML is cut off half-way."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(["Case Number", "Description", "Status"])
    for number in range(1, row_count + 1):
        sheet.append([f"NVX-{number:04d}", f"Concern number {number}", "Open"])
    buffer = io.BytesIO()
    workbook.save(buffer)

    damaged = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(buffer.getvalue())) as original, zipfile.ZipFile(damaged, "w") as archive:
        for item in original.infolist():
            data = original.read(item.filename)
            if item.filename == "xl/worksheets/sheet1.xml":
                data = data[: len(data) // 2]
            archive.writestr(item, data)
    return damaged.getvalue()
