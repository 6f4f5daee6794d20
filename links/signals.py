from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from hackernews.pubsub import NEW_LINK, NEW_VOTE, pubsub
from links.models import LinkModel, VoteModel


# Subscription payloads are resolved inside the subscriber's event loop, where Django refuses to
# query the database. So the instance is fetched again here, in the thread that saved it, with
# every relation a Link or Vote type exposes (and one level beyond) already loaded. Publishing
# waits for the commit, so a rolled-back row is never seen by subscribers.

def load_link(pk):
    return (LinkModel.objects
            .select_related('posted_by')
            .prefetch_related('votes__user', 'votes__link__posted_by',
                              'posted_by__links', 'posted_by__votes')
            .filter(pk=pk)
            .first())


def load_vote(pk):
    return (VoteModel.objects
            .select_related('link__posted_by', 'user')
            .prefetch_related('link__votes__user', 'user__links', 'user__votes')
            .filter(pk=pk)
            .first())


def publish_after_commit(channel, load, pk):
    def publish():
        instance = load(pk)
        if instance is not None:
            pubsub.publish(channel, instance)
    transaction.on_commit(publish)


@receiver(post_save, sender=LinkModel, dispatch_uid='links_publish_new_link')
def publish_new_link(sender, instance, created, **kwargs):
    if created:
        publish_after_commit(NEW_LINK, load_link, instance.pk)


@receiver(post_save, sender=VoteModel, dispatch_uid='links_publish_new_vote')
def publish_new_vote(sender, instance, created, **kwargs):
    if created:
        publish_after_commit(NEW_VOTE, load_vote, instance.pk)
