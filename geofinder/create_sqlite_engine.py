import pathlib

from sqlalchemy.ext.asyncio import create_async_engine

from geofinder.load_settings import database_url

file_path = pathlib.Path(__file__).parents[1]
file_path /= "./geofinder.sqlite3"
sqlite_url = database_url or f"sqlite+aiosqlite:///{file_path}"


engine = create_async_engine(url=sqlite_url, echo=False)
