"""Entry point for ``python -m apptoken``.

Bitrise runs the step with its inputs already in the environment
(app_id, installation_id, private_pem, permissions), so no arguments are
needed there; see ``apptoken.cli`` for flags and exit codes.
"""

from __future__ import annotations

from apptoken.cli import main

if __name__ == "__main__":
    main()
