import uvicorn
from core.init_app import create_application

# Initialize App
app = create_application()

if __name__ == "__main__":
    from core.config import settings
    print(f"Starting {settings.PROJECT_NAME} ({settings.OCR_MODE} mode)...")
    uvicorn.run(app, host="0.0.0.0", port=8000)
