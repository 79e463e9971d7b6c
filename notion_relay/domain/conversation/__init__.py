# Conversation engines, one per bot.
#
#   update -> allow-list -> rate limit -> mode dispatch -> command / URL / edit
#          -> Notion call -> Telegram reply -> session updated for next turn
#
# Button presses skip the rate limiter.
