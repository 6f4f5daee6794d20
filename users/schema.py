# howtographql-graphene-tutorial-fixed -- users/schema.py
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

import graphene
from graphene.relay import Node
from graphene_django import DjangoObjectType

from hackernews.errors import AuthenticationError, ConflictError
from users.auth import check_password, create_token, hash_password
from users.models import UserModel

logger = logging.getLogger(__name__)


class User(DjangoObjectType):
    class Meta:
        model = UserModel
        interfaces = (Node, )
        # never 'password'. 'links' and 'votes' are the reverse relations from LinkModel.posted_by
        # and VoteModel.user, which graphene-django turns into [Link!]! and [Vote!]! lists because
        # those types don't use connections.
        fields = ('id', 'name', 'email', 'links', 'votes')
        use_connection = False


class AuthPayload(graphene.ObjectType):
    token = graphene.String()
    user = graphene.Field(User)


class Query(object):
    pass


class Signup(graphene.Mutation):
    # mutation {
    #   signup(name: "Foo Bar", email: "foo@bar.com", password: "abc123") {
    #     token
    #     user { id }
    #   }
    # }

    class Arguments:
        email = graphene.String(required=True)
        password = graphene.String(required=True)
        name = graphene.String(required=True)

    Output = AuthPayload

    @classmethod
    def mutate(cls, root, info, email, password, name):
        # The unique constraint on email would catch this too, but with a far less useful message.
        if UserModel.objects.filter(email=email).exists():
            raise ConflictError('A user with that email address already exists!')
        user = UserModel.objects.create(
            name=name,
            email=email,
            password=hash_password(password),
        )
        logger.info('New user %s signed up', user.pk)
        return AuthPayload(token=create_token(user.pk), user=user)


class Login(graphene.Mutation):
    # mutation {
    #   login(email: "foo@bar.com", password: "abc123") {
    #     token
    #     user { id }
    #   }
    # }

    class Arguments:
        email = graphene.String(required=True)
        password = graphene.String(required=True)

    Output = AuthPayload

    @classmethod
    def mutate(cls, root, info, email, password):
        user = UserModel.objects.filter(email=email).first()
        if not user:
            raise AuthenticationError('No such user found')
        if not check_password(password, user.password):
            logger.info('Failed login for user %s', user.pk)
            raise AuthenticationError('Invalid password')
        return AuthPayload(token=create_token(user.pk), user=user)


class Mutation(object):
    signup = Signup.Field()
    login = Login.Field()
