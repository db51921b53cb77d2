"""Application configuration"""
from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    app_name: str = "IPAM Panel"
    debug: bool = False

    # Provisioning
    batch_size: int = 500

    # Paths
    base_dir: Path = Path(__file__).parent.parent
    project_root: Path = base_dir.parent
    logs_dir: Path = project_root / "logs"
    data_file: Path = base_dir / "ipam.db"  # SQLite database
    log_file: Path = logs_dir / "backend.log"

    class Config:
        env_prefix = "IPAM_"


settings = Settings()

# Ensure directories exist
settings.logs_dir.mkdir(parents=True, exist_ok=True)
settings.data_file.parent.mkdir(parents=True, exist_ok=True)
