from ashram.models.enums import Role
from ashram.models.user import User
from ashram.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User

    def find_by_email(self, email: str) -> User | None:
        return self.find_first([User.email == email.strip().lower()])

    def find_active_gurujis(self) -> list[User]:
        return self.find_many(
            [User.role == Role.GURUJI, User.is_active.is_(True)],
            order_by=(User.created_at.asc(),),
        )

    def get_default_guruji(self) -> User | None:
        """The earliest registered active guruji."""
        return self.find_first(
            [User.role == Role.GURUJI, User.is_active.is_(True)],
            order_by=(User.created_at.asc(), User.id.asc()),
        )
