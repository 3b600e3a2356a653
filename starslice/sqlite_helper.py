import sqlite3
from pathlib import Path


def init_database(db_path: Path):
    """Initialize SQLite database with the simbad_cache table."""
    # Ensure the directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    cursor = conn.cursor()

    # One row per HIP number. A row with every value NULL records a miss so
    # the next run does not ask Simbad again.
    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS simbad_cache (
            hip INTEGER PRIMARY KEY,
            main_id TEXT,
            ra REAL,
            dec REAL,
            parallax_mas REAL,
            vmag REAL
        )
        """
    )

    conn.commit()
    return conn


def get_cache_count(db_path: Path) -> int:
    """Get the number of cached Simbad answers (hits only)."""
    if not db_path.exists():
        return 0
    conn = sqlite3.connect(str(db_path))
    cursor = conn.cursor()
    cursor.execute("SELECT COUNT(*) FROM simbad_cache WHERE main_id IS NOT NULL")
    count = cursor.fetchone()[0]
    conn.close()
    return count


def get_simbad_from_cache(db_path: Path, hip: int):
    """Return the cached entry for ``hip``.

    Returns a dict (hip, main_id, ra_deg, dec_deg, parallax_mas, vmag) for a
    hit, ``False`` for a recorded miss and ``None`` when the HIP number was
    never looked up.
    """
    if not db_path.exists():
        return None
    conn = sqlite3.connect(str(db_path))
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT hip, main_id, ra, dec, parallax_mas, vmag
        FROM simbad_cache
        WHERE hip = ?
        """,
        (int(hip),),
    )
    row = cursor.fetchone()
    conn.close()

    if row is None:
        return None
    if row[1] is None:
        return False
    return {
        "hip": row[0],
        "main_id": row[1],
        "ra_deg": row[2],
        "dec_deg": row[3],
        "parallax_mas": row[4],
        "vmag": row[5],
    }


def put_simbad_in_cache(db_path: Path, rows) -> int:
    """Insert or replace cached entries. Each row is a dict with at least ``hip``."""
    if not rows:
        return 0
    conn = init_database(db_path)
    cursor = conn.cursor()
    data = [
        (
            int(r["hip"]),
            r.get("main_id") or f"HIP {int(r['hip'])}",
            r.get("ra_deg"),
            r.get("dec_deg"),
            r.get("parallax_mas"),
            r.get("vmag"),
        )
        for r in rows
    ]
    cursor.executemany(
        """
        INSERT OR REPLACE INTO simbad_cache
        (hip, main_id, ra, dec, parallax_mas, vmag)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        data,
    )
    n = cursor.rowcount
    conn.commit()
    conn.close()
    return n


def put_simbad_miss(db_path: Path, hip: int) -> None:
    """Record that Simbad has nothing usable for ``hip``."""
    conn = init_database(db_path)
    cursor = conn.cursor()
    cursor.execute(
        """
        INSERT OR REPLACE INTO simbad_cache
        (hip, main_id, ra, dec, parallax_mas, vmag)
        VALUES (?, NULL, NULL, NULL, NULL, NULL)
        """,
        (int(hip),),
    )
    conn.commit()
    conn.close()


def clear_simbad_cache(db_path: Path) -> int:
    """Remove every cached answer, hits and misses alike."""
    if not db_path.exists():
        return 0
    conn = sqlite3.connect(str(db_path))
    cursor = conn.cursor()
    cursor.execute("DELETE FROM simbad_cache")
    deleted = cursor.rowcount
    conn.commit()
    conn.close()
    return deleted
