import sys

from appboot import APP_VERSION, ApplicationContext, BeanBuilder, run_application
from appboot.config import Settings, load_settings_config
from appboot.logging_config import configure_logging


def wire(ctx: ApplicationContext) -> None:
    ctx.logger.info("wiring - no business routes registered")


if __name__ == "__main__":
    settings = Settings()
    configure_logging(app_name=settings.APP_NAME, level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    sys.exit(
        run_application(
            settings.APP_NAME,
            APP_VERSION,
            sys.argv[1:],
            settings.enablers,
            BeanBuilder(config=load_settings_config),
            wire,
        )
    )
