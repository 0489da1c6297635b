# src/history_report.py

# ------------------------------------------------------------
# Enable postponed evaluation of type hints
# ------------------------------------------------------------
from __future__ import annotations

# ------------------------------------------------------------
# Used for timing logs
# ------------------------------------------------------------
from datetime import datetime, timezone

# ------------------------------------------------------------
# SQLAlchemy session manager
# ------------------------------------------------------------
from sqlalchemy.orm import Session

# ------------------------------------------------------------
# DB engine (configured via DATABASE_URL)
# ------------------------------------------------------------
from src.floodwatch.db import engine

# ------------------------------------------------------------
# Key-value helpers and history summary
# ------------------------------------------------------------
from src.floodwatch import crud, history


def main() -> None:
    """
    Print a history summary for every known station.

    For each station key in the history bucket:
      - count  = number of stored readings
      - oldest = timestamp of the first reading
      - latest = timestamp of the last reading

    NOTE: stations with config but no history are listed with count 0.
    """

    # Record start time for log output
    start = datetime.now(timezone.utc)

    # Open DB session
    with Session(engine) as db:
        # Station keys from both config and history buckets
        keys = {key for key, _ in crud.list_documents(db, crud.STATIONS)}
        keys |= {key for key, _ in crud.list_documents(db, crud.HISTORY)}

        # One summary line per station, in key order
        for key in sorted(keys):
            info = history.history_info(db, key)
            print(
                f"[history] {key}: count={info['count']} oldest={info['oldest']} latest={info['latest']}",
                flush=True,
            )

    # Record end time
    end = datetime.now(timezone.utc)

    # Print final summary
    print(
        f"[history] start={start.isoformat()} end={end.isoformat()} stations={len(keys)}",
        flush=True,
    )


# Standard entry point guard
if __name__ == "__main__":
    main()
