"""
Runtime configuration.

Every setting can be overridden through the environment:

RDX_PREDICT_URL : prediction service base URL (graphpredict, disease/hpos)
RDX_HPO_URL     : phenotype catalog / related-term service base URL
RDX_MAPPING_URL : free-text-to-HPO mapping service base URL
RDX_AUTH_URL    : authentication + disease-info service base URL
RDX_EMAIL       : login e-mail for the disease-info service
RDX_PASSWORD    : login password for the disease-info service
RDX_STATE_DIR   : where the last prediction session and a downloaded hp.json are kept (default ~/.rdx)
RDX_TIMEOUT     : HTTP timeout in seconds (default 30)
"""

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass

STATE_FILE_NAME = "prediction_state.json"
HPO_FILE_NAME = "hp.json"


@dataclass(frozen=True)
class Settings:
    predict_url: str = "http://34.93.204.92:8081"
    hpo_url: str = "http://34.93.204.92:5000"
    mapping_url: str = "http://34.93.204.92:5000"
    auth_url: str = "http://34.93.204.92:3001"
    email: str = ""
    password: str = ""
    state_dir: pathlib.Path = pathlib.Path.home() / ".rdx"
    timeout: float = 30.0

    @property
    def state_file(self) -> pathlib.Path:
        return self.state_dir / STATE_FILE_NAME

    @property
    def hpo_file(self) -> pathlib.Path:
        """Where `rdx download` puts the HPO release used to resolve symptom labels."""
        return self.state_dir / HPO_FILE_NAME

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            predict_url=os.getenv("RDX_PREDICT_URL", defaults.predict_url).rstrip("/"),
            hpo_url=os.getenv("RDX_HPO_URL", defaults.hpo_url).rstrip("/"),
            mapping_url=os.getenv("RDX_MAPPING_URL", defaults.mapping_url).rstrip("/"),
            auth_url=os.getenv("RDX_AUTH_URL", defaults.auth_url).rstrip("/"),
            email=os.getenv("RDX_EMAIL", defaults.email),
            password=os.getenv("RDX_PASSWORD", defaults.password),
            state_dir=pathlib.Path(os.getenv("RDX_STATE_DIR", str(defaults.state_dir))).expanduser(),
            timeout=float(os.getenv("RDX_TIMEOUT", str(defaults.timeout))),
        )
