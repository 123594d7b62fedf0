"""Telegram application wiring for the Study Planner."""

from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
)

from .planner_bot import StudyPlannerBot


def build_application(bot_token: str, bot: StudyPlannerBot) -> Application:
    """Configure the Telegram application instance."""
    application = ApplicationBuilder().token(bot_token).build()
    application.add_handler(CommandHandler("start", bot.handle_start))
    application.add_handler(CommandHandler("add", bot.handle_add))
    application.add_handler(CommandHandler("modules", bot.handle_modules))
    application.add_handler(CommandHandler("remove", bot.handle_remove))
    application.add_handler(CommandHandler("busy", bot.handle_busy))
    application.add_handler(CommandHandler("unbusy", bot.handle_unbusy))
    application.add_handler(CommandHandler("plan", bot.handle_plan))
    application.add_handler(CommandHandler("schedule", bot.handle_schedule))
    application.add_handler(CommandHandler("risk", bot.handle_risk))
    application.add_handler(CommandHandler("review", bot.handle_review))
    application.add_handler(CommandHandler("stat", bot.handle_stat))
    application.add_handler(CallbackQueryHandler(bot.handle_rate_module, pattern=r"^rv:"))
    application.add_handler(MessageHandler(filters.Document.ALL, bot.handle_document))
    return application
