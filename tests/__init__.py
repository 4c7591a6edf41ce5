# Back-office API Test Suite
#
# Black-box HTTP tests (pytest + httpx) against the WSGI app backed by an
# ephemeral SQLite file, so several requests can run concurrently.
#
# Unit and service tests live in backend/tests.
