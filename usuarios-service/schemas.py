from typing import Dict, List, Optional
from pydantic import BaseModel


class UserCreate(BaseModel):
    # Campos ausentes são rejeitados pelo store com 400
    nome: Optional[str] = None
    email: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    nome: str
    email: str


class UserEnvelope(BaseModel):
    sucesso: bool = True
    mensagem: Optional[str] = None
    dados: UserResponse


class UserListEnvelope(BaseModel):
    sucesso: bool = True
    dados: List[UserResponse]
    total: int


class ErrorEnvelope(BaseModel):
    sucesso: bool = False
    mensagem: str


class ServiceInfo(BaseModel):
    mensagem: str
    versao: str
    endpoints: Dict[str, str]
