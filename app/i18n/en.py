# -*- coding: utf-8 -*-
"""English (en) strings."""

LANG = {
    # Main menu
    "main.welcome": (
        "🚀 Welcome to the Referral Race!\n\n"
        "Invite your friends to join our Telegram community and climb the leaderboard.\n\n"
        "Top referrers win:\n\n"
        "🥇 $100\n"
        "🥈 $60\n"
        "🥉 $40\n\n"
        "👉 Tap “Get My Referral Link” to start earning points.\n\n"
        "You can also check your rank and see the leaderboard.\n"
        "The more you invite, the higher you rise. 🌕"
    ),
    "main.button_link": "🔗 Get My Referral Link",
    "main.button_rank": "🏆 My Rank",
    "main.button_top": "📈 Top 10 Leaderboard",
    "main.service_unavailable": "⚠️ Service temporarily unavailable. Please try again later.",

    # Errors
    "errors.generic": "Sorry, something went wrong. Please try again later.",
    "errors.rank": "Could not retrieve your rank. Please try again.",
    "errors.leaderboard": "Could not retrieve the leaderboard. Please try again.",

    # Referral link
    "referral.your_link": "Here is your unique referral link:\n{link}",
    "referral.invalid_link": "This referral link is not valid. Ask your friend to send their link again.",
    "referral.self": "You can't use your own referral link. Share it with your friends instead!",

    # Referred user (the one who opened a link)
    "referral.welcome_new": "Welcome, {name}! You were referred. Please join our group to complete the referral.",
    "referral.welcome_returning": (
        "Welcome back, {name}! You are being referred by a new user. "
        "Please join the group to complete the referral."
    ),
    "referral.already_active": "Welcome back, {name}! It looks like you are already an active member of our group.",
    "referral.invite_link": "Here is your personal one-time link to the group: {invite_link}",
    "referral.invite_link_failed": "Sorry, I couldn't generate an invite link right now. Please contact an admin.",
    "referral.invite_link_name": "Referral for {name}",

    # Referrer notifications
    "referral.referrer_pending_new": (
        "🎉 Great news! {name} has used your referral link. "
        "You'll get your point once they join the group."
    ),
    "referral.referrer_pending_returning": (
        "🎉 Great news! {name} (a returning user) has used your referral link. "
        "You'll get your point once they join the group."
    ),
    "referral.referrer_joined": "✅ Success! {name} has joined the group. Your referral count has increased.",
    "referral.referrer_left": (
        "❗️ Heads up! {name}, whom you referred, has left the group. "
        "Your referral count has been updated."
    ),

    # Rank / leaderboard
    "rank.summary": "You have <b>{count}</b> referrals.\nYour current rank is <b>{rank}</b>!",
    "rank.none": "You haven't referred anyone yet. Use your referral link to get started!",
    "leaderboard.title": "🏆 <b>Top {limit} Referrers</b> 🏆",
    "leaderboard.row": "{position}. {name} - {count} referrals",
    "leaderboard.empty": "The leaderboard is empty. No one has any referrals yet!",

    "common.user": "User",
}
