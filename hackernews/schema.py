import graphene

import links.schema
import users.schema


class Query(links.schema.Query, users.schema.Query, graphene.ObjectType):
    info = graphene.String(required=True)

    def resolve_info(self, info):
        return 'This is the API of a Hackernews Clone'


class Mutation(links.schema.Mutation, users.schema.Mutation, graphene.ObjectType):
    pass


Subscription = links.schema.Subscription


schema = graphene.Schema(query=Query, mutation=Mutation, subscription=Subscription)
