"""
Point d'entrée pour `python -m toolbridge`.
"""
import os

import uvicorn

from .logging_setup import setup_logging


def main():
    """Fonction principale."""
    import argparse

    parser = argparse.ArgumentParser(description="Tool Bridge")
    parser.add_argument("--host", default="127.0.0.1", help="Host (défaut: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (défaut: 8000)")
    parser.add_argument("--config", default=None, help="Chemin du fichier config.toml")
    parser.add_argument("--log-level", default="INFO", help="Niveau de log (défaut: INFO)")
    parser.add_argument("--reload", action="store_true", help="Activer le reload auto")

    args = parser.parse_args()

    if args.config:
        os.environ["TOOLBRIDGE_CONFIG"] = args.config
    logger = setup_logging(args.log_level)

    logger.info(f"Démarrage du Tool Bridge sur {args.host}:{args.port}")

    uvicorn.run(
        "toolbridge.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
