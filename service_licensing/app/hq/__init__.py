"""
HQ license verification package.

Asks the licensing HQ whether this installation is licensed and keeps the
answer in a shared cache store:

- hq.payload: Builds the verification request body.
- hq.executor: Performs the HTTP call and classifies every failure.
- hq.normalizer: Coerces arbitrary HQ bodies into mappings.
- hq.coordinator: Cache key, staleness guard and the public check operations.

Unverifiable states fail open: collaborators see ``valid = True`` with the
error recorded on the verdict.
"""
