"""Command line interface for testing configuration loading"""
import sys
from pathlib import Path

from . import get_settings, remote_configured, SettingsError

SECRET_KEYS = {'supabase_anon_key', 'db_url'}

def mask(value: str) -> str:
    """Hide all but the first few characters of a secret"""
    if not value:
        return value
    return value[:6] + '...' if len(value) > 6 else '***'

def main():
    """Display loaded configuration"""
    try:
        settings_conf = get_settings()
    except SettingsError as e:
        print(e)
        return 1
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        shown = mask(value) if key in SECRET_KEYS else value
        print(f"{key}: {shown}")

    print("\nSelected engine:")
    print("-" * 50)
    print("supabase" if remote_configured(settings_conf) else "local")

    # Save example configuration file
    example = Path("settings.conf.example")
    if not example.exists():
        with open(example, "w") as f:
            f.write("""[DEFAULT]
# Directory holding the local fallback record store
storage_dir = ~/.bazarlink/
# Hosted Supabase project (leave placeholders to use the local fallback)
supabase_url = your-supabase-url
supabase_anon_key = your-supabase-anon-key
# Direct Postgres connection string, only needed for `python -m database provision`
db_url =
# Seed a demo user, seller and products into an empty local store
seed_demo_data = true
log_level = INFO
""")

if __name__ == "__main__":
    sys.exit(main())
