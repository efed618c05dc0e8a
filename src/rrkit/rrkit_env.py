from pathlib import Path
import os
import tomllib
from pydantic import BaseModel, Field, ValidationError
from typing import Optional
from jinja2 import Template


# ─── Config Schema ─────────────────────────────────────────────────
class GenerationConfig(BaseModel):
    max_instances: int = Field(365, ge=1)
    query_limit: int = Field(200, ge=1)
    horizon_years: int = Field(2, ge=1)


class DisplayConfig(BaseModel):
    lang: str = Field("zh", pattern="^(zh|en)$")
    ampm: bool = False


class LogConfig(BaseModel):
    enabled: bool = True


class RrkitConfig(BaseModel):
    title: str = "Rrkit Configuration"
    generation: GenerationConfig = GenerationConfig()
    display: DisplayConfig = DisplayConfig()
    log: LogConfig = LogConfig()


# ─── Commented Template ────────────────────────────────────
CONFIG_TEMPLATE = """\
title = "{{ title }}"

[generation]
# Upper bound on the number of occurrences walked for one series.
# max_instances: int >= 1
max_instances = {{ generation.max_instances }}

# Ceiling used when instances are fetched for a stored event and a
# display window.
# query_limit: int >= 1
query_limit = {{ generation.query_limit }}

# Occurrences are never generated more than this many years after the
# anchor date, whatever the rule's UNTIL says.
# horizon_years: int >= 1
horizon_years = {{ generation.horizon_years }}

[display]
# lang: str = 'zh' | 'en'
lang = "{{ display.lang }}"

# ampm: bool = true | false
ampm = {{ display.ampm | lower }}

[log]
# Write log_msg entries to logs/log_<YYMMDD>.md under the home directory.
# enabled: bool = true | false
enabled = {{ log.enabled | lower }}

"""

# ─── Save Config with Comments ───────────────────────────────


def render_config(config: RrkitConfig) -> str:
    template = Template(CONFIG_TEMPLATE)
    return template.render(**config.model_dump()).strip() + "\n"


def save_config_from_template(config: RrkitConfig, path: Path):
    path.write_text(render_config(config), encoding="utf-8")
    print(f"✅ Config with comments written to: {path}")


# ─── Main Environment Class ───────────────────────────────


class RrkitEnvironment:
    def __init__(self):
        self._home = self._resolve_home()
        self._config: Optional[RrkitConfig] = None

    @property
    def home(self) -> Path:
        return self._home

    @property
    def config_path(self) -> Path:
        return self.home / "config.toml"

    @property
    def db_path(self) -> Path:
        return self.home / "rrkit.db"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"

    def ensure(self, init_config: bool = True, init_db_fn: Optional[callable] = None):
        self.home.mkdir(parents=True, exist_ok=True)

        if init_config and not self.config_path.exists():
            save_config_from_template(RrkitConfig(), self.config_path)

        if init_db_fn and not self.db_path.exists():
            init_db_fn(self.db_path)

    def load_config(self) -> RrkitConfig:
        # Step 1: Create the file if it doesn't exist
        if not self.config_path.exists():
            config = RrkitConfig()
            self.home.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(render_config(config), encoding="utf-8")
            print(f"✅ Created new config file at {self.config_path}")
            self._config = config
            return config

        # Step 2: Try to load and validate the config
        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
            config = RrkitConfig.model_validate(data)
        except (ValidationError, tomllib.TOMLDecodeError) as e:
            print(f"⚠️ Config error in {self.config_path}: {e}\nUsing defaults.")
            config = RrkitConfig()

        # Step 3: Always regenerate the canonical version
        rendered = render_config(config)
        current_text = self.config_path.read_text(encoding="utf-8")
        if rendered != current_text:
            self.config_path.write_text(rendered, encoding="utf-8")
            print(f"✅ Updated {self.config_path} with any missing defaults.")

        self._config = config
        return config

    @property
    def config(self) -> RrkitConfig:
        if self._config is None:
            return self.load_config()
        return self._config

    def _resolve_home(self) -> Path:
        cwd = Path.cwd()
        if (cwd / "config.toml").exists() and (cwd / "rrkit.db").exists():
            return cwd

        env_home = os.getenv("RRKIT_HOME")
        if env_home:
            return Path(env_home).expanduser()

        xdg_home = os.getenv("XDG_CONFIG_HOME")
        if xdg_home:
            return Path(xdg_home).expanduser() / "rrkit"
        else:
            return Path.home() / ".config" / "rrkit"
