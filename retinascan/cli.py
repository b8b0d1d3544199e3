"""
Interactive admin CLI for the RetinaScan portal.
Review pending doctors and inspect assignments directly against the database.
"""

import argparse

from retinascan.approval import ApprovalWorkflow
from retinascan.assignments import AssignmentRegistry
from retinascan.database import create_schema, describe_schema, init_engine
from retinascan.errors import PortalError
from retinascan.profiles import create_admin

HELP = """Commands:
  pending                          list doctors awaiting review (oldest first)
  approve <doctor_id>              approve a pending doctor
  reject <doctor_id>               reject a pending doctor
  patients <doctor_id>             list a doctor's assigned patients
  doctor <patient_id>              show a patient's assigned doctor
  create-admin <id> <email> <name> create an admin profile
  schema                           show tables
  quit"""


def run_command(line, engine, workflow, registry) -> bool:
    """Execute one command line; returns False when the loop should stop."""
    parts = line.split()
    cmd, args = parts[0].lower(), parts[1:]

    if cmd in {"quit", "exit"}:
        print("Goodbye.")
        return False

    if cmd == "help":
        print(HELP)
    elif cmd == "pending":
        doctors = workflow.list_pending()
        if not doctors:
            print("(no pending doctors)")
        for d in doctors:
            print(f"  {d.id}  {d.name} <{d.email}>  license={d.license_number or '-'}"
                  f"  specialty={d.specialty or '-'}  since={d.created_at}")
    elif cmd in {"approve", "reject"} and len(args) == 1:
        profile = workflow.set_status(args[0], "approved" if cmd == "approve" else "rejected")
        print(f"[admin] {profile.name} is now {profile.status}")
    elif cmd == "patients" and len(args) == 1:
        patients = registry.get_patients_for(args[0])
        if not patients:
            print("(no assigned patients)")
        for p in patients:
            print(f"  {p.profile.id}  {p.profile.name}  assigned {p.assigned_at}")
    elif cmd == "doctor" and len(args) == 1:
        doctor = registry.get_doctor_for(args[0])
        print(f"  {doctor.id}  {doctor.name}" if doctor else "(no doctor assigned)")
    elif cmd == "create-admin" and len(args) >= 3:
        profile = create_admin(engine, args[0], args[1], " ".join(args[2:]))
        print(f"[admin] Created admin {profile.name} ({profile.id})")
    elif cmd == "schema":
        print(describe_schema(engine))
    else:
        print(HELP)
    return True


def main():
    parser = argparse.ArgumentParser(description="RetinaScan portal admin console")
    parser.add_argument("--init-db", action="store_true", help="create missing tables first")
    parser.add_argument("--db-uri", help="override DB_URI")
    opts = parser.parse_args()

    print("=== RetinaScan Portal: Admin Console ===\n")

    engine = init_engine(opts.db_uri)
    if opts.init_db:
        create_schema(engine)
        print("[init] Tables created.")

    workflow = ApprovalWorkflow(engine)
    registry = AssignmentRegistry(engine)
    print(HELP)

    while True:
        try:
            line = input("\nadmin> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if not line:
            continue
        try:
            if not run_command(line, engine, workflow, registry):
                break
        except PortalError as e:
            print(f"\n[ERROR] {e.message}")


if __name__ == "__main__":
    main()
