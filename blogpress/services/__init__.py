# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   article_service  : CRUD, publish, likes and filtered pagination for Article
#   comment_service  : threaded comments on published articles
#   user_service     : user directory and admin removal
#   auth_service     : registration, login and own profile
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as blogpress.exceptions
# errors, never returned as None.
