# howtographql-graphene-tutorial-fixed -- links/schema.py
#
# Copyright © 2017 Sean Bolton.
#
# Permission is hereby granted, free of charge, to any person obtaining
# a copy of this software and associated documentation files (the
# "Software"), to deal in the Software without restriction, including
# without limitation the rights to use, copy, modify, merge, publish,
# distribute, sublicense, and/or sell copies of the Software, and to
# permit persons to whom the Software is furnished to do so, subject to
# the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE
# LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION
# OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION
# WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.

import logging

import django_filters
from django.db import IntegrityError, transaction
from django.db.models import Q

import graphene
from graphene.relay import Node
from graphene_django import DjangoObjectType

from hackernews.errors import ConflictError, InvalidArgumentError, NotFoundError
from hackernews.pubsub import NEW_LINK, NEW_VOTE, pubsub
from links.models import LinkModel, VoteModel
from users.auth import get_user

logger = logging.getLogger(__name__)


# ========== Vote ==========

class Vote(DjangoObjectType):
    class Meta:
        model = VoteModel
        interfaces = (Node, )
        fields = ('id', 'link', 'user')
        # Relations are plain lists in this schema, so no VoteConnection is wanted. With
        # use_connection off, graphene-django turns the reverse 'votes' relations on Link and User
        # into [Vote!]! fields.
        use_connection = False


class CreateVote(graphene.Mutation):
    # mutation {
    #   vote(linkId: "TGlua01vZGVsOjE=") {
    #     id
    #     link { votes { id } }
    #     user { name }
    #   }
    # }

    class Arguments:
        link_id = graphene.ID(required=True)

    Output = Vote

    @classmethod
    def mutate(cls, root, info, link_id):
        user = get_user(info.context)
        try:
            link = Node.get_node_from_global_id(info, link_id, only_type=Link)
        except Exception:
            # unparseable global id, or an id for some other type
            link = None
        if not link:
            raise NotFoundError('Link not found')
        if VoteModel.objects.filter(user=user, link=link).exists():
            raise ConflictError('Already voted for link: {}'.format(link_id))
        # The check above is not atomic with the insert; a concurrent vote can still get in
        # between, in which case the unique constraint on (user, link) rejects this one.
        try:
            with transaction.atomic():
                vote = VoteModel.objects.create(user=user, link=link)
        except IntegrityError:
            raise ConflictError('Already voted for link: {}'.format(link_id))
        logger.info('User %s voted for link %s', user.pk, link.pk)
        return vote


# ========== Link ==========

class Link(DjangoObjectType):
    class Meta:
        model = LinkModel
        interfaces = (Node, )
        fields = ('id', 'created_at', 'description', 'url', 'posted_by', 'votes')
        use_connection = False


class LinkOrderByInput(graphene.Enum):
    """This provides the schema's LinkOrderByInput Enum type, for ordering the feed."""
    # The left-hand side is the over-the-wire Enum value, the right-hand side is the Django
    # order_by() expression the feed resolver uses.
    description_ASC = 'description'
    description_DESC = '-description'
    url_ASC = 'url'
    url_DESC = '-url'
    createdAt_ASC = 'created_at'
    createdAt_DESC = '-created_at'


class LinkFeedFilterSet(django_filters.FilterSet):
    """Matches links whose description or url contains the search text."""
    search = django_filters.CharFilter(method='filter_description_or_url')

    class Meta:
        model = LinkModel
        fields = []

    def filter_description_or_url(self, queryset, name, value):
        return queryset.filter(Q(description__icontains=value) | Q(url__icontains=value))


class Feed(graphene.ObjectType):
    links = graphene.List(graphene.NonNull(Link), required=True)
    count = graphene.Int(required=True)

    # 'feed' is a field on Query, but the feed logic lives here with the type it returns.
    @staticmethod
    def get_feed_input_fields():
        return {
            'filter': graphene.String(),
            'skip': graphene.Int(),
            'first': graphene.Int(),
            'order_by': graphene.Argument(LinkOrderByInput),
        }

    @staticmethod
    def resolve_feed(_, info, filter=None, skip=None, first=None, order_by=None):
        if skip is not None and skip < 0:
            raise InvalidArgumentError('skip must not be negative')
        if first is not None and first < 0:
            raise InvalidArgumentError('first must not be negative')

        # An empty or missing filter matches everything; CharFilter skips empty values.
        qs = LinkFeedFilterSet(data={'search': filter}, queryset=LinkModel.objects.all()).qs
        # count is over the filtered links, before pagination
        count = qs.count()

        # Graphene hands us the Enum member; its value is the order_by() expression. Without an
        # ordering, links come back in the order they were created. 'id' breaks ties.
        if order_by is not None:
            qs = qs.order_by(getattr(order_by, 'value', order_by), 'id')
        else:
            qs = qs.order_by('id')

        start = skip or 0
        stop = None if first is None else start + first
        return Feed(links=list(qs[start:stop]), count=count)


class Post(graphene.Mutation):
    # mutation {
    #   post(url: "http://example.com", description: "New Link") {
    #     id
    #     createdAt
    #     postedBy { name }
    #   }
    # }
    # with an 'Authorization: Bearer <token>' header.

    class Arguments:
        url = graphene.String(required=True)
        description = graphene.String(required=True)

    Output = Link

    @classmethod
    def mutate(cls, root, info, url, description):
        # authentication comes first, so nothing is written for an anonymous request
        user = get_user(info.context)
        link = LinkModel.objects.create(
            url=url,
            description=description,
            posted_by=user,
        )
        logger.info('User %s posted link %s', user.pk, link.pk)
        return link


# ========== Subscription ==========

# Each subscribe_* function returns an async iterator of model instances (see hackernews.pubsub),
# fed by the post_save receivers in links.signals. Graphene resolves the field itself to each
# instance in turn. Resolution happens inside the subscriber's event loop, so the receivers publish
# instances with their relations already loaded.

class Subscription(graphene.ObjectType):
    new_link = graphene.Field(Link)
    new_vote = graphene.Field(Vote)

    def subscribe_new_link(root, info):
        return pubsub.subscribe(NEW_LINK)

    def subscribe_new_vote(root, info):
        return pubsub.subscribe(NEW_VOTE)


# ========== schema structure ==========

class Query(object):
    feed = graphene.Field(
        Feed,
        required=True,
        resolver=Feed.resolve_feed,
        **Feed.get_feed_input_fields()
    )
    node = Node.Field()


class Mutation(object):
    post = Post.Field()
    vote = CreateVote.Field()
