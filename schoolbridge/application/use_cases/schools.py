from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...infrastructure.models import SchoolORM
from ...infrastructure.repositories import SchoolRepository, classify_integrity_error


class ListSchools:
    def __init__(self, db: Session):
        self.db = db

    def execute(self) -> list[SchoolORM]:
        return SchoolRepository(self.db).list_active()


class CreateSchool:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, data: dict) -> SchoolORM:
        row = SchoolORM(**data)
        try:
            SchoolRepository(self.db).add(row)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise classify_integrity_error(e)
        return row
