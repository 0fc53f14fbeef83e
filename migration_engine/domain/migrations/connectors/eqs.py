"""EQS Integrity Line / Conversant exports."""
from migration_engine.domain.migrations.connectors.base import Connector, MarkerRule

EQS_COLUMNS = (
    "Report ID", "Report Number", "Ref Number", "Reference Number", "Report Type",
    "Issue Category", "Category Name", "Status", "Status Name", "Created Date",
    "Report Date", "Received Date", "Closed Date", "Resolution Date",
    "Reporter Type", "Anonymous Report", "Is Anonymous", "Location", "Site Name",
    "Division", "Region", "Country", "Case Description", "Report Text",
    "Description", "Summary", "Investigation Status", "Investigation Outcome",
    "Outcome", "Resolution", "Assigned User", "Assignee", "Handler", "Severity",
    "Risk Level", "Subject Name", "Subject Employee ID", "Whistleblower ID",
)

EQS_COLUMN_HINTS = {
    "Report ID": "sourceRecordId",
    "Report Number": "referenceNumber",
    "Ref Number": "referenceNumber",
    "Reference Number": "referenceNumber",
    "Report Type": "categoryName",
    "Issue Category": "categoryName",
    "Category Name": "categoryName",
    "Status": "status",
    "Status Name": "status",
    "Investigation Status": "status",
    "Severity": "severity",
    "Risk Level": "severity",
    "Created Date": "createdAt",
    "Report Date": "createdAt",
    "Received Date": "createdAt",
    "Closed Date": "closedAt",
    "Resolution Date": "closedAt",
    "Anonymous Report": "isAnonymous",
    "Is Anonymous": "isAnonymous",
    "Reporter Type": "reporterType",
    "Report Text": "details",
    "Case Description": "details",
    "Description": "details",
    "Summary": "summary",
    "Investigation Outcome": "resolution",
    "Outcome": "resolution",
    "Resolution": "resolution",
    "Location": "locationName",
    "Site Name": "locationName",
    "Region": "locationState",
    "Country": "locationCountry",
    "Division": "businessUnitName",
    "Assigned User": "assignedToEmail",
    "Assignee": "assignedToEmail",
    "Handler": "assignedToEmail",
    "Subject Name": "subjectName",
    "Subject Employee ID": "employeeId",
}

EQS_CATEGORIES = {
    "Harassment": "HARASSMENT",
    "Sexual Harassment": "HARASSMENT",
    "Bullying": "HARASSMENT",
    "Discrimination": "DISCRIMINATION",
    "Fraud": "FRAUD",
    "Financial Misconduct": "FRAUD",
    "Theft": "THEFT",
    "Embezzlement": "THEFT",
    "Conflict of Interest": "CONFLICT_OF_INTEREST",
    "COI": "CONFLICT_OF_INTEREST",
    "Ethics Concern": "ETHICS_VIOLATION",
    "Code Violation": "ETHICS_VIOLATION",
    "Policy Violation": "POLICY_VIOLATION",
    "Health & Safety": "SAFETY",
    "Safety Issue": "SAFETY",
    "Workplace Safety": "SAFETY",
    "Retaliation": "RETALIATION",
    "Substance Abuse": "SUBSTANCE_ABUSE",
    "Violence/Threats": "WORKPLACE_VIOLENCE",
    "Workplace Violence": "WORKPLACE_VIOLENCE",
    "Corruption": "CORRUPTION",
    "Bribery": "BRIBERY",
    "Anti-Bribery": "BRIBERY",
    "Data Protection": "DATA_PRIVACY",
    "Privacy Breach": "DATA_PRIVACY",
    "GDPR Violation": "DATA_PRIVACY",
    "Regulatory Compliance": "REGULATORY_VIOLATION",
    "Compliance Issue": "REGULATORY_VIOLATION",
    "Environmental": "ENVIRONMENTAL",
    "Human Rights": "HUMAN_RIGHTS",
    "Labor Violation": "HUMAN_RIGHTS",
    "Other": "OTHER",
    "General": "OTHER",
    "Miscellaneous": "OTHER",
}

EQS_STATUSES = {
    "New": "NEW",
    "Received": "NEW",
    "Submitted": "NEW",
    "Open": "OPEN",
    "In Progress": "IN_PROGRESS",
    "Processing": "IN_PROGRESS",
    "Under Review": "IN_PROGRESS",
    "Investigating": "IN_PROGRESS",
    "On Hold": "PENDING",
    "Waiting": "PENDING",
    "Pending Information": "PENDING_RESPONSE",
    "Awaiting Response": "PENDING_RESPONSE",
    "Completed": "CLOSED",
    "Closed": "CLOSED",
    "Resolved": "CLOSED",
    "Archived": "CLOSED",
    "Rejected": "DISMISSED",
    "Dismissed": "DISMISSED",
    "Not Actionable": "DISMISSED",
}

EQS_SEVERITIES = {
    "Critical": "CRITICAL",
    "High": "HIGH",
    "Severe": "HIGH",
    "Level 3": "HIGH",
    "3": "HIGH",
    "Medium": "MEDIUM",
    "Moderate": "MEDIUM",
    "Standard": "MEDIUM",
    "Level 2": "MEDIUM",
    "2": "MEDIUM",
    "Low": "LOW",
    "Minor": "LOW",
    "Minimal": "LOW",
    "Level 1": "LOW",
    "1": "LOW",
}

EQS = Connector(
    connector_id="EQS",
    display_name="EQS Integrity Line / Conversant",
    known_columns=EQS_COLUMNS,
    marker_rules=(
        MarkerRule(
            groups=(("report id", "report number", "ref number"), ("report type", "issue category")),
            bonus=0.25,
        ),
        MarkerRule(groups=(("whistleblower", "integrity"),), bonus=0.15),
    ),
    column_hints=EQS_COLUMN_HINTS,
    value_dictionaries={
        "status": EQS_STATUSES,
        "category": EQS_CATEGORIES,
        "severity": EQS_SEVERITIES,
    },
    value_defaults={"status": "NEW", "category": "OTHER", "severity": "MEDIUM"},
    id_prefix="EQS",
)
