"""Agency CRM backend package.

Objective:
    Provide the server-side glue of a small-business CRM:
    - Send invitation and password-reset emails through one SMTP transport.
    - Provision a fixed Google Drive folder tree for every new client.
    - Expose both over a small HTTP API and a CLI.

Key modules:
    - :mod:`src.agency_crm.google_auth`:
        Service-account credential resolution (env, then key file).
    - :mod:`src.agency_crm.drive_client`:
        Drive v3 wrapper for folder lookup, creation and sharing.
    - :mod:`src.agency_crm.folder_provisioner`:
        Lookup-then-create of the per-client folder tree.
    - :mod:`src.agency_crm.mailer`:
        Mail sender with a swappable transport.
    - :mod:`src.agency_crm.onboarding`:
        "Create client" workflow (record, provision, share, invite).
    - :mod:`src.agency_crm.cli` / :mod:`src.agency_crm.webapp`:
        User-facing entrypoints.
"""

__version__ = "0.1.0"
