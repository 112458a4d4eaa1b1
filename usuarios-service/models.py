import threading
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel
from errors import NotFound, ValidationError

MISSING_FIELDS_MESSAGE = "Nome e email são obrigatórios"
EMAIL_IN_USE_MESSAGE = "Email já está em uso"


class User(BaseModel):
    id: int
    nome: str
    email: str


# Dados iniciais, restaurados a cada início do processo
SEED_USERS = [
    ("João Silva", "joao@email.com"),
    ("Maria Santos", "maria@email.com"),
    ("Pedro Costa", "pedro@email.com"),
]


class ValidationResult(str, Enum):
    OK = "ok"
    MISSING_FIELDS = "missing_fields"
    EMAIL_IN_USE = "email_in_use"


def validate_user(users: List[User], nome: Optional[str], email: Optional[str],
                  ignore_id: Optional[int] = None) -> ValidationResult:
    """Validação comum a create e update.

    `ignore_id` exclui o próprio registro da checagem de unicidade do email.
    """
    if not nome or not email:
        return ValidationResult.MISSING_FIELDS
    if any(u.email == email and u.id != ignore_id for u in users):
        return ValidationResult.EMAIL_IN_USE
    return ValidationResult.OK


def _raise_for(result: ValidationResult):
    if result is ValidationResult.MISSING_FIELDS:
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    if result is ValidationResult.EMAIL_IN_USE:
        raise ValidationError(EMAIL_IN_USE_MESSAGE)


class UserStore:
    """Armazenamento em memória dos usuários.

    Todas as operações passam pelo mesmo lock, então requisições
    concorrentes nunca observam a lista ou o contador pela metade.
    """

    def __init__(self, lock=None):
        self._lock = lock or threading.RLock()
        self._users: List[User] = []
        self._next_id = 1
        self.reset()

    def reset(self):
        with self._lock:
            self._users = [
                User(id=i, nome=nome, email=email)
                for i, (nome, email) in enumerate(SEED_USERS, start=1)
            ]
            self._next_id = len(self._users) + 1

    def __len__(self):
        with self._lock:
            return len(self._users)

    @property
    def next_id(self) -> int:
        return self._next_id

    def _index_of(self, user_id: int) -> int:
        index = next((i for i, u in enumerate(self._users) if u.id == user_id), None)
        if index is None:
            raise NotFound()
        return index

    def list_users(self) -> List[User]:
        with self._lock:
            return list(self._users)

    def get_user(self, user_id: int) -> User:
        with self._lock:
            return self._users[self._index_of(user_id)]

    def create_user(self, nome: Optional[str], email: Optional[str]) -> User:
        with self._lock:
            _raise_for(validate_user(self._users, nome, email))
            user = User(id=self._next_id, nome=nome, email=email)
            self._next_id += 1
            self._users.append(user)
            return user

    def update_user(self, user_id: int, nome: Optional[str], email: Optional[str]) -> User:
        # Substituição completa: só id, nome e email sobrevivem
        with self._lock:
            index = self._index_of(user_id)
            _raise_for(validate_user(self._users, nome, email, ignore_id=user_id))
            user = User(id=user_id, nome=nome, email=email)
            self._users[index] = user
            return user

    def delete_user(self, user_id: int) -> User:
        with self._lock:
            return self._users.pop(self._index_of(user_id))


# Armazenamento em memória compartilhado pelo processo
users_db = UserStore()
