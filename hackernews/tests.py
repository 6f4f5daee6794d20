import asyncio
import json

from django.test import SimpleTestCase, override_settings

import graphene
from graphene_django.utils.testing import GraphQLTestCase

from hackernews.pubsub import PubSub
from hackernews.schema import Query
from hackernews.utils import format_graphql_errors
from links.models import LinkModel
from users.auth import create_token
from users.tests import create_test_user


# ========== publish/subscribe hub tests ==========

class PubSubTests(SimpleTestCase):
    def test_publish_to_each_listener(self):
        hub = PubSub()
        async def run():
            first = hub.subscribe('chan')
            second = hub.subscribe('chan')
            hub.publish('chan', 'hello')
            received = [await first.__anext__(), await second.__anext__()]
            await first.aclose()
            await second.aclose()
            return received
        self.assertEqual(asyncio.run(run()), ['hello', 'hello'])
        self.assertEqual(hub.listener_count('chan'), 0)

    def test_channels_are_separate(self):
        hub = PubSub()
        async def run():
            listener = hub.subscribe('a')
            hub.publish('b', 'not for a')
            hub.publish('a', 'for a')
            payload = await listener.__anext__()
            await listener.aclose()
            return payload
        self.assertEqual(asyncio.run(run()), 'for a')

    def test_only_events_after_subscribing(self):
        hub = PubSub()
        async def run():
            hub.publish('chan', 'too early')
            listener = hub.subscribe('chan')
            hub.publish('chan', 'on time')
            payload = await listener.__anext__()
            await listener.aclose()
            return payload
        self.assertEqual(asyncio.run(run()), 'on time')

    def test_closed_listener_stops_iterating(self):
        hub = PubSub()
        async def run():
            listener = hub.subscribe('chan')
            await listener.aclose()
            hub.publish('chan', 'ignored')
            return [payload async for payload in listener]
        self.assertEqual(asyncio.run(run()), [])

    def test_listener_with_closed_loop_is_dropped(self):
        """a listener whose event loop went away without closing it is removed on publish"""
        hub = PubSub()
        async def run():
            return hub.subscribe('chan')
        listener = asyncio.run(run())
        self.assertEqual(hub.listener_count('chan'), 1)
        hub.publish('chan', 'nobody listening')
        self.assertEqual(hub.listener_count('chan'), 0)
        self.assertTrue(listener.closed)

    def test_subscribe_outside_event_loop(self):
        with self.assertRaises(RuntimeError):
            PubSub().subscribe('chan')


# ========== error formatting tests ==========

class FormatGraphQLErrorsTests(SimpleTestCase):
    def test_no_errors(self):
        self.assertIsNone(format_graphql_errors(None))
        self.assertIsNone(format_graphql_errors([]))

    def test_resolver_error(self):
        schema = graphene.Schema(query=Query)
        result = schema.execute('query { feed(skip: -1) { count } }')
        text = format_graphql_errors(result.errors)
        self.assertIn('GraphQL schema execution error [0]', text)
        self.assertIn('skip must not be negative', text)
        self.assertIn("path: ['feed']", text)
        # the traceback of the exception the resolver raised
        self.assertIn('Traceback', text)
        self.assertIn('InvalidArgumentError', text)

    def test_non_exception(self):
        self.assertIn("'odd'", format_graphql_errors(['odd']))


# ========== HTTP transport tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class GraphQLViewTests(GraphQLTestCase):
    GRAPHQL_URL = '/graphql/'

    def post_with_token(self, query, token):
        response = self.client.post(
            self.GRAPHQL_URL,
            json.dumps({'query': query}),
            content_type='application/json',
            HTTP_AUTHORIZATION='Bearer {}'.format(token),
        )
        return response

    def test_info(self):
        response = self.query('query { info }')
        self.assertResponseNoErrors(response)
        content = json.loads(response.content)
        self.assertEqual(content['data'], {'info': 'This is the API of a Hackernews Clone'})

    def test_post_with_authorization_header(self):
        user = create_test_user()
        response = self.post_with_token('''
          mutation {
            post(url: "http://example.com", description: "Example") {
              url
              postedBy { name }
            }
          }
        ''', create_token(user.pk))
        self.assertResponseNoErrors(response)
        content = json.loads(response.content)
        self.assertEqual(content['data']['post'],
                         {'url': 'http://example.com', 'postedBy': {'name': user.name}})
        self.assertEqual(LinkModel.objects.get().posted_by, user)

    def test_post_without_authorization_header(self):
        response = self.query('''
          mutation {
            post(url: "http://example.com", description: "Example") { url }
          }
        ''')
        self.assertResponseHasErrors(response)
        content = json.loads(response.content)
        self.assertEqual(content['errors'][0]['message'], 'Not authenticated')
        self.assertEqual(LinkModel.objects.count(), 0)

    def test_signup_then_post(self):
        response = self.query('''
          mutation {
            signup(email: "sulu@example.com", password: "helm", name: "Hikaru Sulu") {
              token
            }
          }
        ''')
        self.assertResponseNoErrors(response)
        token = json.loads(response.content)['data']['signup']['token']
        response = self.post_with_token('''
          mutation {
            post(url: "http://example.com", description: "Example") {
              postedBy { email }
            }
          }
        ''', token)
        self.assertResponseNoErrors(response)
        content = json.loads(response.content)
        self.assertEqual(content['data']['post']['postedBy'], {'email': 'sulu@example.com'})
