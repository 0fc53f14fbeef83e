"""NAVEX EthicsPoint exports."""
from migration_engine.domain.migrations.connectors.base import Connector, MarkerRule

NAVEX_COLUMNS = (
    "Case Number", "Case ID", "Case Type", "Incident Type", "Issue Type",
    "Case Status", "Status", "Date Reported", "Date Created", "Date Closed",
    "Incident Date", "Reporter Type", "Anonymous", "Location", "Facility",
    "Site", "Department", "Business Unit", "Description", "Narrative",
    "Summary", "Resolution", "Outcome", "Assigned To", "Investigator",
    "Priority", "Severity", "Category", "Subcategory", "Country", "State",
    "City", "Subject Name", "Accused Name", "Reporter Name", "Reporter Email",
    "Employee ID",
)

NAVEX_COLUMN_HINTS = {
    "Case Number": "referenceNumber",
    "Case ID": "sourceRecordId",
    "Case Type": "categoryName",
    "Incident Type": "categoryName",
    "Issue Type": "categoryName",
    "Category": "categoryName",
    "Case Status": "status",
    "Status": "status",
    "Priority": "severity",
    "Severity": "severity",
    "Date Reported": "createdAt",
    "Date Created": "createdAt",
    "Date Closed": "closedAt",
    "Incident Date": "incidentDate",
    "Anonymous": "isAnonymous",
    "Reporter Type": "reporterType",
    "Reporter Name": "reporterName",
    "Reporter Email": "reporterEmail",
    "Description": "details",
    "Narrative": "details",
    "Summary": "summary",
    "Resolution": "resolution",
    "Outcome": "resolution",
    "Location": "locationName",
    "Facility": "locationName",
    "Site": "locationName",
    "City": "locationCity",
    "State": "locationState",
    "Country": "locationCountry",
    "Department": "businessUnitName",
    "Business Unit": "businessUnitName",
    "Subject Name": "subjectName",
    "Accused Name": "subjectName",
    "Employee ID": "employeeId",
    "Assigned To": "assignedToEmail",
    "Investigator": "assignedToEmail",
}

NAVEX_CATEGORIES = {
    "Harassment": "HARASSMENT",
    "Sexual Harassment": "HARASSMENT",
    "Bullying": "HARASSMENT",
    "Hostile Work Environment": "HARASSMENT",
    "Discrimination": "DISCRIMINATION",
    "Racial Discrimination": "DISCRIMINATION",
    "Age Discrimination": "DISCRIMINATION",
    "Gender Discrimination": "DISCRIMINATION",
    "Fraud": "FRAUD",
    "Financial Fraud": "FRAUD",
    "Theft": "THEFT",
    "Conflict of Interest": "CONFLICT_OF_INTEREST",
    "COI": "CONFLICT_OF_INTEREST",
    "Ethics Violation": "ETHICS_VIOLATION",
    "Code of Conduct": "ETHICS_VIOLATION",
    "Safety": "SAFETY",
    "Workplace Safety": "SAFETY",
    "Safety Concern": "SAFETY",
    "Retaliation": "RETALIATION",
    "Substance Abuse": "SUBSTANCE_ABUSE",
    "Drug/Alcohol": "SUBSTANCE_ABUSE",
    "Violence": "WORKPLACE_VIOLENCE",
    "Workplace Violence": "WORKPLACE_VIOLENCE",
    "Corruption": "CORRUPTION",
    "Bribery": "BRIBERY",
    "FCPA Violation": "BRIBERY",
    "Privacy Violation": "DATA_PRIVACY",
    "Data Breach": "DATA_PRIVACY",
    "Regulatory Violation": "REGULATORY_VIOLATION",
    "Compliance": "REGULATORY_VIOLATION",
    "Other": "OTHER",
    "Unknown": "OTHER",
    "General": "OTHER",
}

NAVEX_STATUSES = {
    "Open": "OPEN",
    "New": "NEW",
    "Received": "NEW",
    "In Progress": "IN_PROGRESS",
    "Active": "IN_PROGRESS",
    "Investigating": "IN_PROGRESS",
    "Under Investigation": "IN_PROGRESS",
    "Pending": "PENDING",
    "Pending Response": "PENDING_RESPONSE",
    "Awaiting Response": "PENDING_RESPONSE",
    "Awaiting Information": "PENDING_RESPONSE",
    "Closed": "CLOSED",
    "Resolved": "CLOSED",
    "Complete": "CLOSED",
    "Completed": "CLOSED",
    "Dismissed": "DISMISSED",
    "No Action Required": "DISMISSED",
}

NAVEX_SEVERITIES = {
    "Critical": "CRITICAL",
    "High": "HIGH",
    "Urgent": "HIGH",
    "3": "HIGH",
    "Medium": "MEDIUM",
    "Moderate": "MEDIUM",
    "Normal": "MEDIUM",
    "2": "MEDIUM",
    "Low": "LOW",
    "Minor": "LOW",
    "1": "LOW",
}

NAVEX = Connector(
    connector_id="NAVEX",
    display_name="NAVEX EthicsPoint",
    known_columns=NAVEX_COLUMNS,
    marker_rules=(
        MarkerRule(
            groups=(("case number", "case id"), ("case type", "incident type", "issue type")),
            bonus=0.3,
        ),
    ),
    column_hints=NAVEX_COLUMN_HINTS,
    value_dictionaries={
        "status": NAVEX_STATUSES,
        "category": NAVEX_CATEGORIES,
        "severity": NAVEX_SEVERITIES,
    },
    value_defaults={"status": "NEW", "category": "OTHER", "severity": "MEDIUM"},
    id_prefix="NAVEX",
)
