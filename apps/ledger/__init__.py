"""
Ledger App - User Tiers and Leaderboard

Owns each user's current tier, cumulative spend and membership serial
number, plus the ranked leaderboard derived from them.

Architecture:
- Models: UserTierRecord, LeaderboardEntry
- Services: TierLedger (single writer), LeaderboardIndex (ranking)
- Views: GET /leaderboard, GET /leaderboard/user/{userId}
- Management: rebuild_leaderboard
"""
