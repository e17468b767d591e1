import argparse
from datetime import timedelta

from sqlalchemy.orm import Session

from db import SessionLocal
from gallerydesk.core.clock import utcnow
from gallerydesk.core.plan_features import PlanTier
from gallerydesk.models.account import Account, AccountSession


def upsert_account(
    username: str, email: str, plan: str | None, session_days: int
) -> tuple[bool, int, str | None]:
    s: Session = SessionLocal()
    try:
        account = s.query(Account).filter(Account.Username == username).first()
        created = False
        if not account:
            account = Account(Username=username, Email=email, PlanKey=plan or PlanTier.FREE.code)
            s.add(account)
            created = True
        else:
            if email:
                account.Email = email
            if plan:
                # Direct edit; use the /internal/plan-change route to reconcile on downgrade
                account.PlanKey = plan
        account.IsActive = True
        s.flush()

        session_id = None
        if session_days > 0:
            sess = AccountSession(
                UserID=account.UserID, ExpiresAt=utcnow() + timedelta(days=session_days)
            )
            s.add(sess)
            s.flush()
            session_id = sess.SessionID
        s.commit()
        return created, int(account.UserID), session_id
    finally:
        s.close()


def main():
    parser = argparse.ArgumentParser(description="Create or update an account for local development.")
    parser.add_argument("--username", required=True, help="Owner handle used in gallery slugs")
    parser.add_argument("--email", default="")
    parser.add_argument("--plan", choices=[t.code for t in PlanTier], default=None)
    parser.add_argument(
        "--session-days",
        type=int,
        default=0,
        help="Also issue a session valid for this many days and print its id",
    )
    args = parser.parse_args()

    username = args.username.strip()
    email = args.email.strip() or f"{username}@example.com"
    created, user_id, session_id = upsert_account(username, email, args.plan, args.session_days)
    status = "created" if created else "updated"
    print(f"Account {status}: id={user_id} username={username} plan={args.plan or '-'}")
    if session_id:
        print(f"session_id={session_id}")


if __name__ == "__main__":
    main()
