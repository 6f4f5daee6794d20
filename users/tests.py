# howtographql-graphene-tutorial-fixed -- users/tests.py
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

from datetime import datetime, timedelta, timezone

from django.conf import settings
from django.test import TestCase, override_settings

import graphene
from graphene.relay import Node
from jose import jwt

from hackernews.errors import AuthenticationError
from hackernews.schema import Mutation, Query
from hackernews.utils import format_graphql_errors
from .auth import check_password, create_token, decode_token, get_user, get_user_id, hash_password
from .models import UserModel


# ========== utility functions ==========

TEST_PASSWORD = 'abc123'


def create_test_user(name=None, password=None, email=None):
    user = UserModel.objects.create(
        name=name or 'Test User',
        password=hash_password(password or TEST_PASSWORD),
        email=email or 'test@user.com'
    )
    return user


def context_with_token(token):
    class Auth(object):
        META = {'HTTP_AUTHORIZATION': 'Bearer {}'.format(token)}
    return Auth


def context_for_user(user):
    return context_with_token(create_token(user.pk))


def context_without_token():
    class Auth(object):
        META = {}
    return Auth


# ========== password hashing tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class PasswordTests(TestCase):
    def test_hash_is_not_plaintext(self):
        hashed = hash_password(TEST_PASSWORD)
        self.assertNotEqual(hashed, TEST_PASSWORD)
        self.assertTrue(hashed.startswith('$2'))

    def test_hashes_are_salted(self):
        self.assertNotEqual(hash_password(TEST_PASSWORD), hash_password(TEST_PASSWORD))

    def test_check_password(self):
        hashed = hash_password(TEST_PASSWORD)
        self.assertTrue(check_password(TEST_PASSWORD, hashed))
        self.assertFalse(check_password('xxx' + TEST_PASSWORD, hashed))

    def test_check_password_against_garbage(self):
        """a stored value that isn't a bcrypt hash never matches"""
        self.assertFalse(check_password(TEST_PASSWORD, TEST_PASSWORD))


# ========== user authentication token tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class UserAuthTokenTests(TestCase):
    def test_token_round_trip(self):
        """decode_token() returns the user id create_token() was given"""
        user = create_test_user()
        token = create_token(user.pk)
        self.assertIsInstance(token, str)
        self.assertEqual(decode_token(token), user.pk)

    def test_token_expiry(self):
        """tokens carry an expiry time, unless JWT_EXPIRATION_MINUTES is 0"""
        claims = jwt.get_unverified_claims(create_token(1))
        self.assertIn('exp', claims)
        with self.settings(JWT_EXPIRATION_MINUTES=0):
            claims = jwt.get_unverified_claims(create_token(1))
        self.assertNotIn('exp', claims)

    def test_expired_token(self):
        expired = datetime.now(timezone.utc) - timedelta(minutes=5)
        token = jwt.encode({'userId': 1, 'exp': expired}, settings.APP_SECRET,
                           algorithm=settings.JWT_ALGORITHM)
        with self.assertRaises(AuthenticationError):
            decode_token(token)

    def test_token_with_wrong_signature(self):
        token = jwt.encode({'userId': 1}, 'not the secret', algorithm=settings.JWT_ALGORITHM)
        with self.assertRaises(AuthenticationError):
            decode_token(token)

    def test_token_without_user_id(self):
        token = jwt.encode({'foo': 'bar'}, settings.APP_SECRET, algorithm=settings.JWT_ALGORITHM)
        with self.assertRaises(AuthenticationError):
            decode_token(token)

    def test_malformed_token(self):
        with self.assertRaises(AuthenticationError):
            decode_token('ArgleBargle')


@override_settings(BCRYPT_ROUNDS=4)
class GetUserTests(TestCase):
    def test_get_user_id_token_missing_or_invalid(self):
        """get_user_id() with no or non-Bearer HTTP_AUTHORIZATION header should raise"""
        with self.assertRaisesMessage(AuthenticationError, 'Not authenticated'):
            get_user_id(context_without_token())
        class AuthInvalid(object):
            META = {'HTTP_AUTHORIZATION': 'ArgleBargle'}
        with self.assertRaisesMessage(AuthenticationError, 'Not authenticated'):
            get_user_id(AuthInvalid)
        with self.assertRaisesMessage(AuthenticationError, 'Not authenticated'):
            get_user_id(None)

    def test_get_user_id_token_valid(self):
        """get_user_id() with valid HTTP_AUTHORIZATION header should return the user's id"""
        user = create_test_user()
        self.assertEqual(get_user_id(context_for_user(user)), user.pk)

    def test_get_user_token_valid(self):
        user = create_test_user()
        self.assertEqual(get_user(context_for_user(user)), user)

    def test_get_user_token_wrong(self):
        """get_user() with a well-formed header but bad token should raise"""
        create_test_user()
        with self.assertRaises(AuthenticationError):
            get_user(context_with_token('AbDbAbDbAbDbA'))

    def test_get_user_deleted(self):
        """a valid token for a user who no longer exists is rejected"""
        user = create_test_user()
        context = context_for_user(user)
        user.delete()
        with self.assertRaisesMessage(AuthenticationError, 'Not authenticated'):
            get_user(context)


# ========== Relay Node tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class RelayNodeTests(TestCase):
    """Test that model nodes can be retreived via the Relay Node interface."""
    def test_node_for_user(self):
        user = create_test_user()
        user_gid = Node.to_global_id('User', user.pk)
        query = '''
          query {
            node(id: "%s") {
              id
              ...on User {
                name
                email
              }
            }
          }
        ''' % user_gid
        expected = {
          'node': {
            'id': user_gid,
            'name': user.name,
            'email': user.email,
          }
        }
        schema = graphene.Schema(query=Query)
        result = schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))


class UserSchemaTests(TestCase):
    def test_password_not_exposed(self):
        """the User type must not have a password field"""
        query = '''
          query {
            __type(name: "User") {
              fields { name }
            }
          }
        '''
        schema = graphene.Schema(query=Query, mutation=Mutation)
        result = schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        names = [f['name'] for f in result.data['__type']['fields']]
        self.assertNotIn('password', names)
        for name in ('id', 'name', 'email', 'links', 'votes'):
            self.assertIn(name, names)


# ========== signup mutation tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class SignupTests(TestCase):
    def setUp(self):
        self.query = '''
          mutation SignupMutation($email: String!, $password: String!, $name: String!) {
            signup(email: $email, password: $password, name: $name) {
              token
              user { name email }
            }
          }
        '''
        self.variables = {
            'name': 'Jim Kirk',
            'email': 'kirk@example.com',
            'password': TEST_PASSWORD,
        }
        self.expected = {
            'signup': {
                'token': 'REDACTED',
                'user': {
                    'name': 'Jim Kirk',
                    'email': 'kirk@example.com',
                }
            }
        }
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def test_signup(self):
        """sucessfully create a user"""
        result = self.schema.execute(self.query, variable_values=self.variables)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        token = result.data['signup']['token']
        result.data['signup']['token'] = 'REDACTED'
        self.assertEqual(result.data, self.expected,
                         msg='\n'+repr(self.expected)+'\n'+repr(result.data))
        # check that the user was created properly
        user = UserModel.objects.get(email='kirk@example.com')
        self.assertEqual(user.name, 'Jim Kirk')
        self.assertNotEqual(user.password, TEST_PASSWORD)
        self.assertTrue(check_password(TEST_PASSWORD, user.password))
        self.assertEqual(decode_token(token), user.pk)

    def test_signup_duplicate(self):
        """should not be able to create two users with the same email"""
        result = self.schema.execute(self.query, variable_values=self.variables)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        # now try to create a second one
        self.variables['name'] = 'Just Spock to Humans'
        self.variables['password'] = '26327790.8685354193060378'
        # -- email address stays the same
        result = self.schema.execute(self.query, variable_values=self.variables)
        self.assertIsNotNone(result.errors,
                             msg='Creating user with duplicate email should have failed')
        self.assertIn('user with that email address already exists', repr(result.errors))
        expected = { 'signup': None } # empty result
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(UserModel.objects.count(), 1)


# ========== login mutation tests ==========

@override_settings(BCRYPT_ROUNDS=4)
class LoginTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.query = '''
          mutation LoginMutation($email: String!, $password: String!) {
            login(email: $email, password: $password) {
              token
              user { name }
            }
          }
        '''
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def test_login(self):
        """normal user login"""
        variables = {
            'email': self.user.email,
            'password': TEST_PASSWORD,
        }
        expected = {
            'login': {
                'token': 'REDACTED',
                'user': {
                    'name': self.user.name,
                }
            }
        }
        result = self.schema.execute(self.query, variable_values=variables)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        try:
            token = result.data['login']['token']
            result.data['login']['token'] = 'REDACTED'
        except KeyError:
            raise Exception('malformed mutation result')
        self.assertEqual(decode_token(token), self.user.pk)
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_login_user_not_found(self):
        """unsuccessful login: user not found"""
        variables = {
            'email': 'xxx' + self.user.email, # unknown email address
            'password': 'irrelevant',
        }
        expected = {'login': None} # empty result
        result = self.schema.execute(self.query, variable_values=variables)
        self.assertIsNotNone(result.errors,
                             msg='Login of user with unknown email should have failed')
        self.assertIn('No such user found', repr(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_login_bad_password(self):
        """unsuccessful login: incorrect password"""
        variables = {
            'email': self.user.email,
            'password': 'xxx' + TEST_PASSWORD, # incorrect password
        }
        expected = {'login': None} # empty result
        result = self.schema.execute(self.query, variable_values=variables)
        self.assertIsNotNone(result.errors,
                             msg='Login of user with incorrect password should have failed')
        self.assertIn('Invalid password', repr(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))


@override_settings(BCRYPT_ROUNDS=4)
class SignupThenLoginTests(TestCase):
    def test_signup_and_login_tokens_agree(self):
        """tokens from signup and from a later login both decode to the new user's id"""
        schema = graphene.Schema(query=Query, mutation=Mutation)
        result = schema.execute('''
          mutation {
            signup(email: "uhura@example.com", password: "hailing", name: "Nyota Uhura") {
              token
            }
          }
        ''')
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        signup_token = result.data['signup']['token']
        result = schema.execute('''
          mutation {
            login(email: "uhura@example.com", password: "hailing") {
              token
            }
          }
        ''')
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        login_token = result.data['login']['token']
        user = UserModel.objects.get(email='uhura@example.com')
        self.assertEqual(get_user_id(context_with_token(signup_token)), user.pk)
        self.assertEqual(get_user_id(context_with_token(login_token)), user.pk)
