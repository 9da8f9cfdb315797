"""
User service: creation and read access for the User aggregate.

Hashing happens here, in ``prepare_user_for_write``, before the row is
handed to the repository; the ORM model only ever sees the hash.  Every
value returned to callers is one of the safe projections from
``commentboard.schemas``, none of which carries the password hash.
"""
import logging

from starlette.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from commentboard.errors import InvalidInput, UpstreamFailure
from commentboard.identity import RandomUserClient
from commentboard.models import User
from commentboard.repository import Repository
from commentboard.schemas import UserCreate, UserId, UserSafe, UserSummary
from commentboard.security import PasswordHasher
from commentboard.services.base import MAX_ID, parse_positive_id, translate_errors

logger = logging.getLogger(__name__)

NAME_MIN, NAME_MAX = 2, 255
PASSWORD_MIN, PASSWORD_MAX = 4, 255


# ---------------------------------------------------------------------------
# Write preparation
# ---------------------------------------------------------------------------

def prepare_user_for_write(data: UserCreate) -> dict:
    """
    Validate *data* and return the column values for a new ``users`` row.

    The password is replaced by its Argon2 hash; the returned dict never
    contains the plaintext.
    """
    name, password = data.name, data.password
    if not name or not password:
        raise InvalidInput("Name and password are required")
    if not NAME_MIN <= len(name) <= NAME_MAX:
        raise InvalidInput(f"Name must be between {NAME_MIN} and {NAME_MAX} characters")
    if not PASSWORD_MIN <= len(password) <= PASSWORD_MAX:
        raise InvalidInput(
            f"Password must be between {PASSWORD_MIN} and {PASSWORD_MAX} characters"
        )
    return {"name": name, "password_hash": PasswordHasher.hash(password)}


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

@translate_errors("listing users")
async def list_user_ids(db: AsyncSession) -> list[UserId]:
    """Return every user id, ascending.  Names and hashes are never selected."""
    rows = await Repository(db, User).find_all(columns=["id"], order_by=[User.id.asc()])
    return [UserId(id=row.id) for row in rows]


@translate_errors("fetching a user")
async def get_user(db: AsyncSession, user_id) -> UserSummary | None:
    """
    Return ``{id, name}`` for *user_id*, or None when no such user exists.

    Raises ``InvalidInput`` for anything that is not a positive integer.
    """
    pk = parse_positive_id(user_id, "user id")
    if pk > MAX_ID:
        return None
    row = await Repository(db, User).get(pk, columns=["id", "name"])
    if row is None:
        return None
    return UserSummary(id=row.id, name=row.name)


@translate_errors("creating a user")
async def create_user(db: AsyncSession, data: UserCreate) -> UserSafe:
    # Argon2 is deliberately slow; keep it off the event loop.
    values = await run_in_threadpool(prepare_user_for_write, data)
    user = await Repository(db, User).insert(**values)
    logger.info("Created user id=%s", user.id)
    return UserSafe(
        id=user.id,
        name=user.name,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


async def populate_random_users(
    db: AsyncSession,
    provider: RandomUserClient,
    count: int = 3,
) -> list[UserSafe]:
    """
    Create *count* users from random identities.

    All identities are fetched concurrently and the whole batch must
    succeed before any row is written.  The rows share the caller's
    transaction, so a failure part-way through leaves none of them behind.
    """
    identities = await provider.fetch_many(count)
    created: list[UserSafe] = []
    for identity in identities:
        try:
            created.append(
                await create_user(db, UserCreate(name=identity.name, password=identity.password))
            )
        except InvalidInput as exc:
            raise UpstreamFailure(f"Identity service returned an unusable identity: {exc}") from exc
    logger.info("Populated %d random user(s)", len(created))
    return created
