"""
Special schemas for the configuration file and its properties
"""

from typing import Dict, Optional, Union

import pydantic


class GeneralConfig(pydantic.BaseModel):
    page_size: pydantic.PositiveInt = 15


class ServerConfig(pydantic.BaseModel):
    host: str = "127.0.0.1"
    port: pydantic.conint(gt=0, lt=65536) = 8000
    secret_key: Optional[pydantic.constr(min_length=16)] = None
    token_expiration_minutes: pydantic.PositiveInt = 120
    allow_weak_insecure_password_hashes: bool = False


class DatabaseConfig(pydantic.BaseModel):
    connection: str = "sqlite://"
    debug_sql: bool = False


class LoggingConfig(pydantic.BaseModel):
    version: pydantic.conint(ge=1, le=1) = 1
    disable_existing_loggers: bool = False
    incremental: bool = False
    formatters: Dict[str, Dict[str, str]] = {
        "default": {
            "style": "{",
            "format": "{asctime}: Helpdesk {process}: [{levelname}] {name}: {message}",
            "datefmt": "%d.%m.%Y %H:%M:%S"
        },
        "file": {
            "style": "{",
            "format": "{asctime} ({process}): [{levelname}] {name}: {message}",
            "datefmt": "%d.%m.%Y %H:%M"
        },
        "faults": {
            "style": "{",
            "format": "{asctime} ({process}): [{levelname}] {name}: {message} {context}",
            "datefmt": "%d.%m.%Y %H:%M:%S"
        },
        "access": {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": "%(asctime)s %(client_addr)s - \"%(request_line)s\" %(status_code)s"
        }
    }
    loggers: Dict[str, dict] = {
        "helpdesk_core.faults": {
            "level": "INFO",
            "handlers": ["faults", "faults_file"],
            "propagate": False
        },
        "uvicorn.access": {
            "level": "INFO",
            "handlers": ["access"],
            "propagate": False
        }
    }
    handlers: Dict[str, Dict[str, Union[str, list]]] = {
        "default": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "default"
        },
        "file": {
            "level": "DEBUG",
            "class": "logging.FileHandler",
            "filename": "./helpdesk.log",
            "formatter": "file"
        },
        "faults": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "faults"
        },
        "faults_file": {
            "level": "INFO",
            "class": "logging.FileHandler",
            "filename": "./helpdesk.log",
            "formatter": "faults"
        },
        "access": {
            "level": "INFO",
            "class": "logging.FileHandler",
            "filename": "./access.log",
            "formatter": "access"
        }
    }
    root: dict = {
        "level": "INFO",
        "handlers": ["default", "file"]
    }


class CoreConfig(pydantic.BaseModel):
    general: GeneralConfig = pydantic.Field(default_factory=GeneralConfig)
    server: ServerConfig = pydantic.Field(default_factory=ServerConfig)
    database: DatabaseConfig = pydantic.Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = pydantic.Field(default_factory=LoggingConfig)
