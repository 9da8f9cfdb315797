# Services package.
#
# Each module exposes a focused set of async functions that validate input,
# call the persistence layer and shape the output for a single aggregate:
#
#   user_service     - list ids, fetch, create (with hashing), bulk populate
#   comment_service  - list (escaped), create, delete
#
# All service functions accept an AsyncSession as their first argument so
# that the router layer controls the transaction boundary via the ``get_db``
# dependency.  Services hold no state between calls.
