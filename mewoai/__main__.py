from .discord_bot import main

main()
