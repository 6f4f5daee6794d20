# howtographql-graphene-tutorial-fixed -- links/tests.py
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

import asyncio
import datetime
import threading
from unittest import mock

from django.db import IntegrityError, transaction
from django.db.models.query import QuerySet
from django.test import TestCase, override_settings

import graphene
from graphene.relay import Node
from graphql import ExecutionResult

from hackernews.pubsub import NEW_LINK, NEW_VOTE, pubsub
from hackernews.schema import Mutation, Query, Subscription
from hackernews.utils import format_graphql_errors
from links.models import LinkModel, VoteModel
from users.tests import context_for_user, context_with_token, context_without_token, \
    create_test_user


# ========== GraphQL schema general tests ==========

class RootTests(TestCase):
    def test_root_query(self):
        """Make sure the root query is 'Query'.

        This test is pretty redundant, given that every other query in this file will fail if this
        is not the case, but it's a nice simple example of testing query execution.
        """
        query = '''
          query RootQueryQuery {
            __schema {
              queryType {
                name  # returns the type of the root query
              }
            }
          }
        '''
        expected = {
            '__schema': {
                'queryType': {
                    'name': 'Query'
                }
            }
        }
        schema = graphene.Schema(query=Query)
        result = schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        assert result.data == expected, '\n'+repr(expected)+'\n'+repr(result.data)

    def test_info(self):
        query = '''
          query {
            info
          }
        '''
        expected = {'info': 'This is the API of a Hackernews Clone'}
        schema = graphene.Schema(query=Query)
        result = schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_link_order_by_input_schema(self):
        """Check the LinkOrderByInput enum has exactly the six orderings."""
        query = '''
          query {
            __type(name: "LinkOrderByInput") {
              enumValues { name }
            }
          }
        '''
        schema = graphene.Schema(query=Query)
        result = schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        names = sorted(v['name'] for v in result.data['__type']['enumValues'])
        expected = sorted([
            'createdAt_ASC', 'createdAt_DESC',
            'description_ASC', 'description_DESC',
            'url_ASC', 'url_DESC',
        ])
        self.assertEqual(names, expected)


# ========== Relay Node tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class RelayNodeTests(TestCase):
    """Test that model nodes can be retreived via the Relay Node interface."""
    def test_node_for_link(self):
        link = LinkModel.objects.create(description='Test', url='http://a.com')
        link_gid = Node.to_global_id('Link', link.pk)
        query = '''
          query {
            node(id: "%s") {
              id
              ...on Link {
                url
              }
            }
          }
        ''' % link_gid
        expected = {
          'node': {
            'id': link_gid,
            'url': 'http://a.com',
          }
        }
        schema = graphene.Schema(query=Query)
        result = schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_node_for_vote(self):
        link = LinkModel.objects.create(description='Test', url='http://a.com')
        user = create_test_user()
        vote = VoteModel.objects.create(link_id=link.pk, user_id=user.pk)
        vote_gid = Node.to_global_id('Vote', vote.pk)
        query = '''
          query {
            node(id: "%s") {
              id
              ...on Vote {
                link {
                  url
                }
                user {
                  name
                }
              }
            }
          }
        ''' % vote_gid
        expected = {
          'node': {
            'id': vote_gid,
            'link': {
              'url': 'http://a.com',
            },
            'user': {
              'name': user.name,
            }
          }
        }
        schema = graphene.Schema(query=Query)
        result = schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))


# ========== relation tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class RelationTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.other = create_test_user(name='Another User', password='zyz987', email='ano@user.com')
        self.link = LinkModel.objects.create(description='First', url='http://a.com',
                                             posted_by=self.user)
        LinkModel.objects.create(description='Second', url='http://b.com', posted_by=self.other)
        VoteModel.objects.create(link=self.link, user=self.user)
        VoteModel.objects.create(link=self.link, user=self.other)
        self.schema = graphene.Schema(query=Query)

    def test_user_links_and_votes(self):
        query = '''
          query UserRelations($id: ID!) {
            node(id: $id) {
              ... on User {
                links { url }
                votes { link { url } }
              }
            }
          }
        '''
        variables = {'id': Node.to_global_id('User', self.other.pk)}
        expected = {
            'node': {
                'links': [ { 'url': 'http://b.com' } ],
                'votes': [ { 'link': { 'url': 'http://a.com' } } ],
            }
        }
        result = self.schema.execute(query, variable_values=variables)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_link_posted_by_and_votes(self):
        query = '''
          query LinkRelations($id: ID!) {
            node(id: $id) {
              ... on Link {
                postedBy { name }
                votes { user { name } }
              }
            }
          }
        '''
        variables = {'id': Node.to_global_id('Link', self.link.pk)}
        result = self.schema.execute(query, variable_values=variables)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data['node']['postedBy'], {'name': 'Test User'})
        voters = sorted(v['user']['name'] for v in result.data['node']['votes'])
        self.assertEqual(voters, ['Another User', 'Test User'])

    def test_posted_by_cleared_when_user_deleted(self):
        self.user.delete()
        self.link.refresh_from_db()
        self.assertIsNone(self.link.posted_by)


# ========== feed query tests ==========

def create_feed_test_data():
    """Create test data for feed tests. Create three links, with description, url, and
    created_at each having a different sort order."""
    def dt(epoch):
        return datetime.datetime.fromtimestamp(epoch, tz=datetime.timezone.utc)
    link = LinkModel(description='Description C', url='http://a.com')
    link.save()  # give 'auto_now_add' a chance to do its thing
    link.created_at = dt(1000000000) # new time stamp, least recent
    link.save()
    link = LinkModel(description='Description B', url='http://b.com')
    link.save()
    link.created_at = dt(1000000400) # most recent
    link.save()
    link = LinkModel(description='Description A', url='http://c.com')
    link.save()
    link.created_at = dt(1000000200)
    link.save()


class FeedTests(TestCase):
    def setUp(self):
        self.schema = graphene.Schema(query=Query)

    def feed_urls(self, arguments=''):
        query = '''
          query FeedTest {
            feed%s {
              links {
                url
              }
              count
            }
          }
        ''' % arguments
        result = self.schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        feed = result.data['feed']
        return [link['url'] for link in feed['links']], feed['count']

    def test_feed(self):
        link = LinkModel(description='Description', url='http://')
        link.save()
        query = '''
          query FeedTest {
            feed {
              links {
                id
                description
                url
                postedBy { name }
              }
              count
            }
          }
        '''
        expected = {
            'feed': {
                'links': [
                    {
                        'id': Node.to_global_id('Link', link.pk),
                        'description': 'Description',
                        'url': 'http://',
                        'postedBy': None,
                    }
                ],
                'count': 1,
            }
        }
        result = self.schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        assert result.data == expected, '\n'+repr(expected)+'\n'+repr(result.data)

    def test_feed_empty(self):
        self.assertEqual(self.feed_urls(), ([], 0))

    def test_feed_insertion_order(self):
        """without orderBy, links come back in the order they were created"""
        create_feed_test_data()
        self.assertEqual(self.feed_urls(),
                         (['http://a.com', 'http://b.com', 'http://c.com'], 3))

    def test_feed_ordered_by(self):
        create_feed_test_data()
        # descending order of creation: b.com, c.com, a.com
        self.assertEqual(self.feed_urls('(orderBy: createdAt_DESC)'),
                         (['http://b.com', 'http://c.com', 'http://a.com'], 3))
        # ascending order of creation: a.com, c.com, b.com
        self.assertEqual(self.feed_urls('(orderBy: createdAt_ASC)'),
                         (['http://a.com', 'http://c.com', 'http://b.com'], 3))
        # ascending order on description: c.com, b.com, a.com
        self.assertEqual(self.feed_urls('(orderBy: description_ASC)'),
                         (['http://c.com', 'http://b.com', 'http://a.com'], 3))
        self.assertEqual(self.feed_urls('(orderBy: description_DESC)'),
                         (['http://a.com', 'http://b.com', 'http://c.com'], 3))
        self.assertEqual(self.feed_urls('(orderBy: url_DESC)'),
                         (['http://c.com', 'http://b.com', 'http://a.com'], 3))

    def test_feed_pagination(self):
        """first/skip select a window; count ignores it"""
        create_feed_test_data()
        self.assertEqual(self.feed_urls('(first: 1, skip: 1)'), (['http://b.com'], 3))
        self.assertEqual(self.feed_urls('(first: 2)'), (['http://a.com', 'http://b.com'], 3))
        self.assertEqual(self.feed_urls('(skip: 2)'), (['http://c.com'], 3))
        self.assertEqual(self.feed_urls('(skip: 10)'), ([], 3))
        self.assertEqual(self.feed_urls('(first: 0)'), ([], 3))
        self.assertEqual(self.feed_urls('(orderBy: url_DESC, first: 2, skip: 1)'),
                         (['http://b.com', 'http://a.com'], 3))

    def test_feed_filter(self):
        """filter matches a substring of either description or url"""
        create_feed_test_data()
        LinkModel.objects.create(description='Learn GraphQL', url='http://d.com')
        LinkModel.objects.create(description='Official site', url='http://graphql.org')
        self.assertEqual(self.feed_urls('(filter: "graphql")'),
                         (['http://d.com', 'http://graphql.org'], 2))
        self.assertEqual(self.feed_urls('(filter: "graphql", first: 1)'),
                         (['http://d.com'], 2))
        self.assertEqual(self.feed_urls('(filter: "b.com")'), (['http://b.com'], 1))
        self.assertEqual(self.feed_urls('(filter: "nothing like this")'), ([], 0))

    def test_feed_empty_filter(self):
        """an empty filter string matches everything"""
        create_feed_test_data()
        urls, count = self.feed_urls('(filter: "")')
        self.assertEqual(count, 3)
        self.assertEqual(len(urls), 3)

    def test_feed_negative_pagination(self):
        create_feed_test_data()
        for arguments, message in (('(skip: -1)', 'skip must not be negative'),
                                   ('(first: -1)', 'first must not be negative')):
            result = self.schema.execute('query { feed%s { count } }' % arguments)
            self.assertIsNotNone(result.errors, msg='feed%s should have failed' % arguments)
            self.assertIn(message, repr(result.errors))
            # feed is non-null, so the error nulls the whole result
            self.assertIsNone(result.data)


# ========== post mutation tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class PostTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.user_gid = Node.to_global_id('User', self.user.pk)
        self.query = '''
          mutation PostMutation($url: String!, $description: String!) {
            post(url: $url, description: $description) {
              url
              description
              postedBy {
                id
              }
            }
          }
        '''
        self.variables = {
            'description': 'Description',
            'url': 'http://example.com',
        }
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def test_post(self):
        """post with a user auth token"""
        result = self.schema.execute(self.query, variable_values=self.variables,
                                     context_value=context_for_user(self.user))
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        expected = {
          'post': {
            'description': 'Description',
            'url': 'http://example.com',
            'postedBy': { 'id': self.user_gid },
          }
        }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        # check that the link was created properly
        link = LinkModel.objects.get(description='Description')
        self.assertEqual(link.url, 'http://example.com')
        self.assertEqual(link.posted_by, self.user)

    def assert_post_rejected(self, context):
        result = self.schema.execute(self.query, variable_values=self.variables,
                                     context_value=context)
        self.assertIsNotNone(result.errors, msg='post should have failed: not authenticated')
        self.assertIn('Not authenticated', repr(result.errors))
        expected = { 'post': None } # empty result
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(LinkModel.objects.count(), 0)

    def test_post_without_token(self):
        """post with no auth token, should not succeed or create anything"""
        self.assert_post_rejected(context_without_token())

    def test_post_with_bad_token(self):
        self.assert_post_rejected(context_with_token('AbDbAbDbAbDbA'))

    def test_post_with_token_for_deleted_user(self):
        context = context_for_user(self.user)
        self.user.delete()
        self.assert_post_rejected(context)


# ========== vote mutation tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class VoteTests(TestCase):
    def setUp(self):
        create_feed_test_data()
        self.link = LinkModel.objects.latest('created_at')
        self.link_gid = Node.to_global_id('Link', self.link.pk)
        self.user = create_test_user()
        self.query = '''
          mutation VoteMutation($linkId: ID!) {
            vote(linkId: $linkId) {
              link {
                id
                votes { id }
              }
              user { name }
            }
          }
        '''
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def vote(self, link_gid, context):
        return self.schema.execute(self.query, variable_values={'linkId': link_gid},
                                   context_value=context)

    def test_vote(self):
        """test normal vote creation, and that duplicate votes are not allowed"""
        result = self.vote(self.link_gid, context_for_user(self.user))
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        vote = VoteModel.objects.get()
        expected = {
          'vote': {
            'link': {
              'id': self.link_gid,
              'votes': [ { 'id': Node.to_global_id('Vote', vote.pk) } ],
            },
            'user': { 'name': self.user.name },
          }
        }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        # verify that a second vote can't be created
        result = self.vote(self.link_gid, context_for_user(self.user))
        self.assertIsNotNone(result.errors,
                             msg='vote should have failed: duplicate votes not allowed')
        self.assertIn('Already voted for link: {}'.format(self.link_gid), repr(result.errors))
        expected = { 'vote': None }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(VoteModel.objects.count(), 1)

    def test_vote_by_different_users(self):
        other = create_test_user(name='Another User', password='zyz987', email='ano@user.com')
        for user in (self.user, other):
            result = self.vote(self.link_gid, context_for_user(user))
            self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(self.link.votes.count(), 2)

    def test_vote_lost_race(self):
        """if another vote slips in after the existence check, the unique constraint catches it"""
        VoteModel.objects.create(link=self.link, user=self.user)
        with mock.patch.object(QuerySet, 'exists', return_value=False):
            result = self.vote(self.link_gid, context_for_user(self.user))
        self.assertIsNotNone(result.errors, msg='vote should have failed: duplicate vote')
        self.assertIn('Already voted for link', repr(result.errors))
        self.assertEqual(VoteModel.objects.count(), 1)

    def test_vote_not_logged(self):
        """ensure vote with no logged user fails"""
        result = self.vote(self.link_gid, context_without_token())
        self.assertIsNotNone(result.errors, msg='vote should have failed: no user logged-in')
        self.assertIn('Not authenticated', repr(result.errors))
        expected = { 'vote': None }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(VoteModel.objects.count(), 0)

    def test_vote_bad_link(self):
        """ensure an unknown or malformed linkId causes failure"""
        last_link_pk = LinkModel.objects.order_by('id').last().pk
        user_gid = Node.to_global_id('User', self.user.pk)
        for link_gid in (Node.to_global_id('Link', last_link_pk + 1),
                         ' invalid base64 linkId ',
                         user_gid):
            result = self.vote(link_gid, context_for_user(self.user))
            self.assertIsNotNone(result.errors,
                                 msg='vote should have failed: invalid linkId ' + link_gid)
            self.assertIn('Link not found', repr(result.errors))
            expected = { 'vote': None }
            self.assertEqual(result.data, expected,
                             msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(VoteModel.objects.count(), 0)


# ========== subscription tests ==========

class SubscriberThread(threading.Thread):
    """Runs a subscription in its own event loop, the way an async server would, and collects the
    first 'count' results it yields. 'subscribed' is set once the subscription is registered.
    """
    def __init__(self, schema, query, count=1):
        super().__init__(daemon=True)
        self.schema = schema
        self.query = query
        self.count = count
        self.subscribed = threading.Event()
        self.results = []
        self.error = None

    def run(self):
        try:
            asyncio.run(self.receive())
        except Exception as e:
            self.error = e
        finally:
            self.subscribed.set()

    async def receive(self):
        stream = await self.schema.subscribe(self.query)
        if isinstance(stream, ExecutionResult):
            self.results.append(stream)
            return
        self.subscribed.set()
        try:
            while len(self.results) < self.count:
                self.results.append(await asyncio.wait_for(stream.__anext__(), timeout=5))
        finally:
            await stream.aclose()


@override_settings(BCRYPT_ROUNDS=4)
class SubscriptionTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.other = create_test_user(name='Another User', password='zyz987', email='ano@user.com')
        self.schema = graphene.Schema(query=Query, mutation=Mutation, subscription=Subscription)

    def subscribe(self, query, count=1):
        subscriber = SubscriberThread(self.schema, query, count)
        subscriber.start()
        self.assertTrue(subscriber.subscribed.wait(5), msg='subscription never started')
        return subscriber

    def execute(self, query, variables, user):
        # Django's TestCase never commits, so run the on_commit publishing by hand.
        with self.captureOnCommitCallbacks(execute=True):
            result = self.schema.execute(query, variable_values=variables,
                                         context_value=context_for_user(user))
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        return result

    def received(self, subscriber):
        subscriber.join(5)
        self.assertFalse(subscriber.is_alive(), msg='subscriber never received its results')
        self.assertIsNone(subscriber.error, msg=repr(subscriber.error))
        for result in subscriber.results:
            self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        return [result.data for result in subscriber.results]

    def test_new_link(self):
        """a newLink subscriber receives a link posted after it subscribed, relations included"""
        LinkModel.objects.create(url='http://earlier.com', description='Earlier',
                                 posted_by=self.user)
        subscriber = self.subscribe('''
          subscription {
            newLink {
              id
              url
              description
              postedBy {
                name
                links { url }
              }
              votes { id }
            }
          }
        ''')
        result = self.execute('''
          mutation PostMutation($url: String!, $description: String!) {
            post(url: $url, description: $description) { id }
          }
        ''', {'url': 'http://example.com', 'description': 'Example'}, self.user)
        expected = [{
            'newLink': {
                'id': result.data['post']['id'],
                'url': 'http://example.com',
                'description': 'Example',
                'postedBy': {
                    'name': self.user.name,
                    'links': [ { 'url': 'http://earlier.com' }, { 'url': 'http://example.com' } ],
                },
                'votes': [],
            }
        }]
        data = self.received(subscriber)
        data[0]['newLink']['postedBy']['links'].sort(key=lambda link: link['url'])
        self.assertEqual(data, expected, msg='\n'+repr(expected)+'\n'+repr(data))
        # closing the stream unsubscribes
        self.assertEqual(pubsub.listener_count(NEW_LINK), 0)

    def test_new_vote(self):
        """a newVote subscriber receives a vote cast after it subscribed, relations included"""
        link = LinkModel.objects.create(url='http://example.com', description='Example',
                                        posted_by=self.other)
        VoteModel.objects.create(link=link, user=self.other)
        link_gid = Node.to_global_id('Link', link.pk)
        subscriber = self.subscribe('''
          subscription {
            newVote {
              id
              link {
                url
                postedBy { name }
                votes { user { name } }
              }
              user { name }
            }
          }
        ''')
        result = self.execute('''
          mutation VoteMutation($linkId: ID!) {
            vote(linkId: $linkId) { id }
          }
        ''', {'linkId': link_gid}, self.user)
        data = self.received(subscriber)
        vote = data[0]['newVote']
        self.assertEqual(vote['id'], result.data['vote']['id'])
        self.assertEqual(vote['link']['url'], 'http://example.com')
        self.assertEqual(vote['link']['postedBy'], {'name': 'Another User'})
        self.assertEqual(sorted(v['user']['name'] for v in vote['link']['votes']),
                         ['Another User', 'Test User'])
        self.assertEqual(vote['user'], {'name': self.user.name})
        self.assertEqual(pubsub.listener_count(NEW_VOTE), 0)

    def test_each_creation_is_received(self):
        subscriber = self.subscribe('subscription { newLink { url } }', count=2)
        post = '''
          mutation PostMutation($url: String!, $description: String!) {
            post(url: $url, description: $description) { id }
          }
        '''
        self.execute(post, {'url': 'http://a.com', 'description': 'A'}, self.user)
        self.execute(post, {'url': 'http://b.com', 'description': 'B'}, self.other)
        self.assertEqual(self.received(subscriber), [
            {'newLink': {'url': 'http://a.com'}},
            {'newLink': {'url': 'http://b.com'}},
        ])


class SubscriptionPublishingTests(TestCase):
    def test_published_on_commit(self):
        """creating a link publishes it, but only once the transaction commits"""
        with mock.patch.object(pubsub, 'publish') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                link = LinkModel.objects.create(url='http://example.com', description='Example')
                publish.assert_not_called()
        publish.assert_called_once_with(NEW_LINK, link)

    def test_rolled_back_not_published(self):
        with mock.patch.object(pubsub, 'publish') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                try:
                    with transaction.atomic():
                        LinkModel.objects.create(url='http://example.com', description='Example')
                        raise IntegrityError('roll it back')
                except IntegrityError:
                    pass
        publish.assert_not_called()
        self.assertEqual(LinkModel.objects.count(), 0)

    def test_updates_are_not_published(self):
        link = LinkModel.objects.create(url='http://example.com', description='Example')
        with mock.patch.object(pubsub, 'publish') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                link.description = 'Changed'
                link.save()
        publish.assert_not_called()

    @override_settings(BCRYPT_ROUNDS=4)
    def test_published_vote_needs_no_queries(self):
        """everything the Vote and Link types expose is loaded before publishing"""
        user = create_test_user()
        link = LinkModel.objects.create(url='http://example.com', description='Example',
                                        posted_by=user)
        with mock.patch.object(pubsub, 'publish') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                VoteModel.objects.create(link=link, user=user)
        channel, vote = publish.call_args[0]
        self.assertEqual(channel, NEW_VOTE)
        with self.assertNumQueries(0):
            self.assertEqual(vote.link.posted_by.name, user.name)
            self.assertEqual([v.user.name for v in vote.link.votes.all()], [user.name])
            self.assertEqual([l.url for l in vote.user.links.all()], ['http://example.com'])
            self.assertEqual(len(vote.user.votes.all()), 1)
