import asyncio

from cantieri.core.database import engine
from cantieri.models import Base


async def reset():
    print("Connessione al database, eliminazione tabelle SAL e anagrafiche...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        print(f"Tabelle eliminate. Creazione di {len(Base.metadata.tables)} tabelle...")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Database cantieri resettato con successo!")

if __name__ == "__main__":
    asyncio.run(reset())
