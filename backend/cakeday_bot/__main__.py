from cakeday_bot.bot import run

run()
