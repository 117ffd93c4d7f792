from getpass import getpass

from sqlalchemy.orm import Session

from .database import Base, SessionLocal, engine
from .models import RoleEnum, User
from .security import hash_password


def create_superuser(db: Session, email: str, name: str, password: str) -> User:
    """Creates a verified admin. Admins cannot come through /auth/register."""
    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValueError(f"A user with email {email} already exists")

    user = User(
        email=email,
        name=name,
        hashed_password=hash_password(password),
        role=RoleEnum.ADMIN,
        is_verified=True,
    )

    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    email = input("Email: ")
    name = input("Name: ")
    password = getpass("Password: ")

    try:
        create_superuser(db, email, name, password)
    except ValueError as exc:
        print(exc)
        raise SystemExit(1)
    finally:
        db.close()

    print("Superuser created successfully")


if __name__ == "__main__":
    main()
