from twitchio import eventsub


def get_channel_subscriptions(broadcaster_user_id: str) -> list[eventsub.SubscriptionPayload]:
    """EventSub subscriptions a channel with an emote config needs."""
    return [
        eventsub.ChannelPointsRedeemAddSubscription(broadcaster_user_id=broadcaster_user_id),
    ]
