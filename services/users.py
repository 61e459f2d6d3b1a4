# services/users.py
import logging

from fastapi import Request
from sqlalchemy import case, delete, func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from config import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_UID, DEFAULT_ADMIN_USERNAME
from services.db import ensure_schema, ocr_histories, row_to_dict, users, utc_now
from utils.metrics import incr

logger = logging.getLogger("api.users")

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

_ACCOUNT_COLUMNS = (
    users.c.id,
    users.c.firebase_uid,
    users.c.email,
    users.c.username,
    users.c.role,
    users.c.disabled,
    users.c.created_at,
    users.c.updated_at,
    users.c.last_login_at,
)


def username_from_email(email: str) -> str:
    local = str(email or "").split("@", 1)[0].strip()
    return local or "user"


class UserDirectory:
    """Local account records keyed by the identity provider's subject id."""

    def __init__(self, engine: Engine):
        self.engine = engine

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_by_uid(self, uid: str) -> dict | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(*_ACCOUNT_COLUMNS).where(users.c.firebase_uid == uid)).first()
        return row_to_dict(row)

    def list_accounts(self) -> list[dict]:
        stmt = select(*_ACCOUNT_COLUMNS).order_by(users.c.created_at.desc(), users.c.id.desc())
        with self.engine.connect() as conn:
            return [row_to_dict(row) for row in conn.execute(stmt)]

    def stats(self) -> dict:
        stmt = select(
            func.count().label("total"),
            func.sum(case((users.c.role == ROLE_ADMIN, 1), else_=0)).label("admins"),
            func.sum(case((users.c.disabled.is_(True), 1), else_=0)).label("disabled"),
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).one()
        total = int(row.total or 0)
        disabled = int(row.disabled or 0)
        return {
            "totalUsers": total,
            "activeUsers": total - disabled,
            "disabledUsers": disabled,
            "adminUsers": int(row.admins or 0),
        }

    # -------------------------------------------------------------------------
    # Provisioning
    # -------------------------------------------------------------------------

    def provision(self, *, uid: str, email: str) -> dict:
        """Return the account for ``uid``, creating a ``user`` account on first sight.

        Two first-time requests for the same uid can both miss the lookup; the
        unique constraint rejects the second insert and that request re-reads
        the row the winner created.
        """
        existing = self.get_by_uid(uid)
        if existing:
            return existing

        now = utc_now()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(users).values(
                        firebase_uid=uid,
                        email=email,
                        username=username_from_email(email),
                        role=ROLE_USER,
                        disabled=False,
                        created_at=now,
                        updated_at=now,
                    )
                )
            incr("api_accounts_provisioned_total")
            logger.info("account_created uid=%s email=%s", uid, email)
        except IntegrityError:
            incr("api_accounts_provision_conflict_total")
            logger.info("account_insert_conflict uid=%s action=reselect", uid)

        account = self.get_by_uid(uid)
        if account is None:
            raise RuntimeError(f"Account for uid={uid} missing after provisioning")
        return account

    def touch_last_login(self, account_id: int) -> None:
        with self.engine.begin() as conn:
            conn.execute(update(users).where(users.c.id == account_id).values(last_login_at=utc_now()))

    # -------------------------------------------------------------------------
    # Admin mutations; each returns False when no account matched
    # -------------------------------------------------------------------------

    def update_role(self, uid: str, role: str) -> bool:
        if role not in ROLES:
            raise ValueError(f"Invalid role: {role}")
        with self.engine.begin() as conn:
            result = conn.execute(
                update(users).where(users.c.firebase_uid == uid).values(role=role, updated_at=utc_now())
            )
        return result.rowcount > 0

    def set_disabled(self, uid: str, disabled: bool) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(users)
                .where(users.c.firebase_uid == uid)
                .values(disabled=bool(disabled), updated_at=utc_now())
            )
        return result.rowcount > 0

    def delete_account(self, uid: str) -> bool:
        with self.engine.begin() as conn:
            account_id = conn.execute(select(users.c.id).where(users.c.firebase_uid == uid)).scalar()
            if account_id is None:
                return False
            removed = conn.execute(delete(ocr_histories).where(ocr_histories.c.user_id == account_id))
            conn.execute(delete(users).where(users.c.id == account_id))
        logger.info("account_deleted uid=%s history_rows=%s", uid, removed.rowcount)
        return True

    # -------------------------------------------------------------------------
    # Bootstrap
    # -------------------------------------------------------------------------

    def ensure_default_admin(self) -> bool:
        with self.engine.connect() as conn:
            admins = conn.execute(select(func.count()).select_from(users).where(users.c.role == ROLE_ADMIN)).scalar()
        if admins:
            logger.info("default_admin_skipped admins=%s", admins)
            return False

        now = utc_now()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(users).values(
                        firebase_uid=DEFAULT_ADMIN_UID,
                        email=DEFAULT_ADMIN_EMAIL,
                        username=DEFAULT_ADMIN_USERNAME,
                        role=ROLE_ADMIN,
                        disabled=False,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            logger.warning("default_admin_conflict uid=%s", DEFAULT_ADMIN_UID)
            return False
        logger.info("default_admin_created uid=%s", DEFAULT_ADMIN_UID)
        return True


def bootstrap_user_directory(engine: Engine) -> UserDirectory:
    ensure_schema(engine)
    directory = UserDirectory(engine)
    directory.ensure_default_admin()
    return directory


def get_user_directory(request: Request) -> UserDirectory:
    return request.app.state.user_directory
