"""
Biometric Credential Repository - Data access layer for enrolled authenticators
"""
from typing import Optional, List
from datetime import datetime
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.biometric_credential import BiometricCredential


class BiometricCredentialRepository(BaseRepository[BiometricCredential]):
    def __init__(self):
        super().__init__(BiometricCredential)

    def get_user_credentials(self, db: Session, user_id: int) -> List[BiometricCredential]:
        return db.query(BiometricCredential).filter(
            BiometricCredential.bc_user_id == user_id
        ).order_by(BiometricCredential.bc_created_at.asc(), BiometricCredential.bc_id.asc()).all()

    def get_user_credential(self, db: Session, user_id: int, credential_id: str) -> Optional[BiometricCredential]:
        return db.query(BiometricCredential).filter(
            BiometricCredential.bc_user_id == user_id,
            BiometricCredential.bc_credential_id == credential_id
        ).first()

    def credential_exists(self, db: Session, credential_id: str) -> bool:
        return db.query(BiometricCredential.bc_id).filter(
            BiometricCredential.bc_credential_id == credential_id
        ).first() is not None

    def add_credential(self, db: Session, credential_data: dict) -> BiometricCredential:
        """Stage a new credential without committing"""
        db_credential = BiometricCredential(**credential_data)
        db.add(db_credential)
        db.flush()
        return db_credential

    def advance_counter(
        self,
        db: Session,
        credential_pk: int,
        expected_counter: int,
        new_counter: int,
        used_at: datetime
    ) -> int:
        """
        Compare-and-set the signature counter without committing

        Returns:
            int: 1 if updated, 0 if another assertion moved the counter first
        """
        return db.query(BiometricCredential).filter(
            BiometricCredential.bc_id == credential_pk,
            BiometricCredential.bc_counter == expected_counter
        ).update(
            {"bc_counter": new_counter, "bc_last_used_at": used_at},
            synchronize_session=False
        )
