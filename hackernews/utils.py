# howtographql-graphene-tutorial-fixed -- <project>/utils.py
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

import traceback

from graphql.error import GraphQLError


# ========== GraphQL error reporting ==========

# A failed field comes back from Schema.execute() as a GraphQLError in result.errors, wrapping the
# exception the resolver raised. Its repr() is just the message and location, which makes for
# unhelpful test failures, so this renders the whole thing, including the original traceback.

def format_graphql_errors(errors):
    """Return a string with the usual exception traceback, plus some extra fields that GraphQL
    provides.
    """
    if not errors:
        return None
    text = []
    for i, e in enumerate(errors):
        text.append('GraphQL schema execution error [{}]:\n'.format(i))
        if isinstance(e, GraphQLError):
            for attr in ('message', 'locations', 'path'):
                text.append('{}: {}\n'.format(attr, repr(getattr(e, attr, None))))
            if e.source:
                text.append('source: {}:{}\n'.format(e.source.name, e.source.body))
            if e.original_error is not None:
                e = e.original_error
        if isinstance(e, Exception):
            text.append(''.join(traceback.format_exception(type(e), e, e.__traceback__)))
        else:
            text.append(repr(e) + '\n')
    return ''.join(text)
