"""Built-in workflow templates seeded on request."""

from wealth_crm.db.enums import WorkflowTrigger


def _task(step_id, name, order, title, category, assign_to, due_days, depends_on=None, **extra):
    config = {
        "task_title": title,
        "task_category": category,
        "task_priority": extra.pop("priority", "high"),
        "assign_to": assign_to,
        "due_days_from_start": due_days,
        **extra,
    }
    return {
        "id": step_id,
        "name": name,
        "type": "task",
        "order": order,
        "config": config,
        "depends_on": depends_on or [],
    }


DEFAULT_TEMPLATES = [
    {
        "name": "New Client Onboarding",
        "description": "Standard workflow for onboarding new wealth management clients",
        "trigger": WorkflowTrigger.NEW_CLIENT_ONBOARDING.value,
        "estimated_duration_days": 30,
        "tags": ["onboarding", "new-client"],
        "steps": [
            _task("welcome-call", "Schedule Welcome Call", 1,
                  "Schedule welcome call with new client", "client_onboarding", "advisor", 1),
            _task("collect-docs", "Collect Required Documents", 2,
                  "Request and collect onboarding documents", "document_request", "operations", 3,
                  ["welcome-call"],
                  task_description="ID verification, account applications, IPS signature"),
            _task("kyc-verification", "Complete KYC Verification", 3,
                  "Complete KYC/AML verification", "kyc_verification", "compliance", 7,
                  ["collect-docs"]),
            _task("open-accounts", "Open Investment Accounts", 4,
                  "Open custodial accounts", "account_opening", "operations", 10,
                  ["kyc-verification"]),
            _task("fund-accounts", "Initiate Asset Transfer", 5,
                  "Initiate ACAT / asset transfers", "money_movement", "operations", 14,
                  ["open-accounts"]),
            _task("initial-investment", "Implement Investment Strategy", 6,
                  "Invest funded accounts per IPS", "trading", "advisor", 21,
                  ["fund-accounts"]),
            {
                "id": "welcome-meeting",
                "name": "Schedule 30-Day Check-In",
                "type": "meeting",
                "order": 7,
                "config": {"meeting_type": "check_in", "due_days_from_start": 30},
                "depends_on": ["initial-investment"],
            },
        ],
    },
    {
        "name": "Annual Review Preparation",
        "description": "Prepare materials and schedule the client's annual review",
        "trigger": WorkflowTrigger.ANNUAL_REVIEW_DUE.value,
        "estimated_duration_days": 14,
        "tags": ["review", "annual"],
        "steps": [
            _task("gather-data", "Gather Performance Data", 1,
                  "Pull performance and holdings reports", "review_preparation", "operations", 3),
            _task("update-planning", "Update Financial Plan", 2,
                  "Refresh financial plan projections", "financial_planning", "advisor", 7,
                  ["gather-data"]),
            _task("review-ips", "Review IPS", 3,
                  "Review investment policy statement", "review_preparation", "advisor", 7,
                  ["gather-data"], priority="medium"),
            _task("prepare-presentation", "Prepare Meeting Materials", 4,
                  "Assemble annual review presentation", "review_preparation", "advisor", 10,
                  ["update-planning", "review-ips"]),
            {
                "id": "schedule-meeting",
                "name": "Schedule Annual Review Meeting",
                "type": "meeting",
                "order": 5,
                "config": {"meeting_type": "annual_review", "due_days_from_start": 14},
                "depends_on": ["prepare-presentation"],
            },
        ],
    },
    {
        "name": "KYC Renewal",
        "description": "Workflow for renewing client KYC verification",
        "trigger": WorkflowTrigger.KYC_EXPIRING.value,
        "estimated_duration_days": 21,
        "tags": ["compliance", "kyc"],
        "steps": [
            {
                "id": "notify-client",
                "name": "Notify Client",
                "type": "email",
                "order": 1,
                "config": {"email_template": "kyc_renewal_request", "email_recipient": "client"},
                "depends_on": [],
            },
            _task("collect-updated-docs", "Collect Updated Documents", 2,
                  "Collect updated KYC documentation", "kyc_verification", "operations", 7,
                  ["notify-client"]),
            _task("run-screening", "Run AML Screening", 3,
                  "Run sanctions and AML screening", "kyc_verification", "compliance", 10,
                  ["collect-updated-docs"]),
            _task("compliance-review", "Compliance Review", 4,
                  "Approve renewed KYC profile", "compliance_review", "compliance", 14,
                  ["run-screening"]),
        ],
    },
]
