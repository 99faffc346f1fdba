from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class CharacterPreset:
    preset_id: int
    project_name: str
    character_name: str
    character_description: str
    reference_script: str
    is_active: bool

    @property
    def display_label(self) -> str:
        p = (self.project_name or "").strip()
        n = (self.character_name or "").strip()
        if p and n:
            return f"{p} - {n}"
        return p or n or f"Preset {self.preset_id}"

    def __str__(self) -> str:
        return self.display_label


class SqlServerPresetRepository:
    """
    Read-only access to saved character voices (description + sample script)
    used to prefill the comparison form.
    """

    def __init__(self, ini_path: str, table_name: str = "dbo.VoiceCharacterPresets"):
        self.ini_path = ini_path
        self.table_name = table_name

        cfg = ConfigParser()
        ok = cfg.read(self.ini_path, encoding="utf-8-sig")
        if not ok:
            raise FileNotFoundError(f"INI not found or unreadable: {self.ini_path}")

        if "sqlserver" not in cfg:
            raise KeyError("Missing [sqlserver] section in INI")

        s = cfg["sqlserver"]
        self._driver = (s.get("driver", "ODBC Driver 17 for SQL Server") or "").strip()
        self._server = (s.get("server", "localhost") or "").strip()
        self._database = (s.get("database", "") or "").strip()
        self._username = (s.get("username", "") or "").strip()
        self._password = (s.get("password", "") or "").strip()
        self.table_name = (s.get("table", "") or "").strip() or self.table_name

        trust_raw = (s.get("trust_cert", "yes") or "").strip().lower()
        self._trust_cert = trust_raw in ("yes", "true", "1")

        if not self._database:
            raise ValueError("sqlserver.database is empty in INI")

    def connection_string(self) -> str:
        parts = [
            f"DRIVER={{{self._driver}}}",
            f"SERVER={self._server}",
            f"DATABASE={self._database}",
        ]

        if self._username:
            parts.append(f"UID={self._username}")
            parts.append(f"PWD={self._password}")
        else:
            parts.append("Trusted_Connection=yes")

        if self._trust_cert:
            parts.append("TrustServerCertificate=yes")

        return ";".join(parts) + ";"

    def _connect(self):
        # pyodbc needs the system ODBC driver manager; only load it when a query runs
        import pyodbc

        return pyodbc.connect(self.connection_string())

    @staticmethod
    def _get(r, name: str, default=""):
        return getattr(r, name, default)

    def _row_to_preset(self, r) -> CharacterPreset:
        return CharacterPreset(
            preset_id=int(self._get(r, "preset_id", 0)),
            project_name=str(self._get(r, "project_name", "") or ""),
            character_name=str(self._get(r, "character_name", "") or ""),
            character_description=str(self._get(r, "character_description", "") or ""),
            reference_script=str(self._get(r, "reference_script", "") or ""),
            is_active=bool(self._get(r, "is_active", True)),
        )

    def _select(self) -> str:
        return f"""
        SELECT
            preset_id,
            project_name,
            character_name,
            character_description,
            reference_script,
            is_active
        FROM {self.table_name}
        """

    def get_active_presets(self) -> List[CharacterPreset]:
        q = self._select() + """
        WHERE is_active = 1
        ORDER BY project_name, character_name
        """

        with self._connect() as conn:
            cur = conn.cursor()
            rows = cur.execute(q).fetchall()

        return [self._row_to_preset(r) for r in rows]

    def get_preset(self, preset_id: int) -> Optional[CharacterPreset]:
        q = self._select() + """
        WHERE preset_id = ?
          AND is_active = 1
        """

        with self._connect() as conn:
            cur = conn.cursor()
            r = cur.execute(q, preset_id).fetchone()

        if not r:
            return None
        return self._row_to_preset(r)
