import asyncio
import sys
import os

# Aggiungi backend/ alla PYTHONPATH per importare service_station.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from service_station.core.config import settings
from service_station.core.database import AsyncSessionLocal, engine
from service_station.models import Base
from service_station.models.user import UserRole
from service_station.schemas.user import UserCreate
from service_station.services.auth_service import AuthService


async def reset():
    print("Connessione al database, eliminazione tabelle...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        print("Tabelle eliminate. Creazione nuove tabelle...")
        await conn.run_sync(Base.metadata.create_all)

    # Il primo utente creato è sempre Admin
    async with AsyncSessionLocal() as session:
        admin = await AuthService().create_user(
            session,
            UserCreate(
                full_name="Amministratore",
                role=UserRole.ADMIN,
                login=settings.bootstrap_admin_login,
                password=settings.bootstrap_admin_password,
            ),
        )
        await session.commit()
        print(f"Creato amministratore '{admin.login}' (id {admin.id})")

    await engine.dispose()
    print("Database resettato con successo!")

if __name__ == "__main__":
    asyncio.run(reset())
