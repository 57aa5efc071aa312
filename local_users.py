"""
Local JSON user file (data/users.json), used for login when the spreadsheet
is not reachable
"""
import json
import logging
import os
import shutil
from datetime import datetime, timezone

from models import UserCredentials

logger = logging.getLogger(__name__)


class LocalUserStore:
    def __init__(self, file_path):
        self.file_path = file_path

    def load_users(self):
        """All stored user dicts; a missing or unreadable file means no users"""
        if not os.path.exists(self.file_path):
            return []
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read local users file {self.file_path}: {e}")
            return []
        return data if isinstance(data, list) else []

    def save_users(self, users):
        directory = os.path.dirname(self.file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if os.path.exists(self.file_path):
            self._create_backup()
        with open(self.file_path, 'w', encoding='utf-8') as f:
            json.dump(users, f, indent=2)
        logger.info(f"Saved {len(users)} local users to {self.file_path}")

    def _create_backup(self):
        backup_path = self.file_path + '.backup'
        shutil.copy2(self.file_path, backup_path)

    def find(self, email):
        """UserCredentials for an email, or None"""
        wanted = str(email or '').strip().lower()
        for entry in self.load_users():
            if str(entry.get('email', '')).strip().lower() == wanted:
                return UserCredentials(
                    email=entry.get('email', ''),
                    password=entry.get('password', ''),
                    is_admin=bool(entry.get('isAdmin', False)),
                    name=entry.get('name', ''),
                )
        return None

    def add_user(self, email, password_hash, name='', is_admin=False):
        """Store a user unless one with this email exists; returns True when added"""
        if self.find(email):
            return False
        users = self.load_users()
        now = datetime.now(timezone.utc)
        users.append({
            'id': f"local-{int(now.timestamp() * 1000)}",
            'email': email,
            'password': password_hash,
            'name': name,
            'isAdmin': bool(is_admin),
            'createdAt': now.isoformat(),
        })
        self.save_users(users)
        return True
