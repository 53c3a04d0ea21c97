from dotenv import load_dotenv
load_dotenv()

from sanctuary.app import app
from sanctuary.routers import analysis, stories

app.include_router(analysis.router)
app.include_router(stories.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("sanctuary.main:app", host="0.0.0.0", port=8000)
