"""
Check if all dependencies are installed correctly
"""

import sys


def check_dependencies():
    """Check required dependencies"""

    print("Checking dependencies...")
    print("=" * 50)

    required = {
        "fastapi": "FastAPI",
        "uvicorn": "Uvicorn",
        "httpx": "HTTPX",
        "pydantic": "Pydantic",
        "pydantic_settings": "pydantic-settings",
        "dotenv": "python-dotenv",
        "redis": "Redis client",
    }

    missing_required = []

    print("\nRequired dependencies:")
    for module, name in required.items():
        try:
            __import__(module)
            print(f"  [OK] {name}")
        except ImportError:
            print(f"  [MISSING] {name}")
            missing_required.append(name)

    print("\n" + "=" * 50)

    if missing_required:
        print("\nMissing required dependencies:")
        for dep in missing_required:
            print(f"  - {dep}")
        print("\nInstall with: pip install -e .")
        return False

    print("\nProvider credentials:")
    from factify.config import get_settings

    settings = get_settings()
    credentials = {
        "Gemini fact-check": (settings.gemini_api_key,),
        "Hugging Face sentiment/classification": (settings.hugging_face_api_key,),
        "SightEngine image checks": (settings.sightengine_api_user, settings.sightengine_api_secret),
        "OCR.space": (settings.ocr_space_api_key,),
    }
    for name, values in credentials.items():
        state = "configured" if settings.is_configured(*values) else "not configured"
        print(f"  [{state.upper()}] {name}")

    print("\nAll required dependencies are installed!")
    return True


if __name__ == "__main__":
    success = check_dependencies()
    sys.exit(0 if success else 1)
